"""Production and development pipelines built from the leaf tasks."""

from buildflow import parallel, sequence


zip_all = parallel("zip.archive", "zip.source", name="zip", description="Write both archives")

build_prod = sequence(
    "clean",
    parallel("assets", "manifest", "bundle-prod"),
    "zip",
    name="build-prod",
    description="One-shot production build",
)

default = sequence("build-prod", name="default", description="Alias of build-prod")

build_watch = sequence("assets", "manifest", name="build-watch")

# Bindings for assets and the manifest template come from the `watch` config
watch = sequence("clean", "build-watch", "bundle-watch", name="watch", description="Development loop")

test = sequence("lint", name="test")
