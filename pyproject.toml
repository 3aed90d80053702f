[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rgbdkit"
version = "0.1.0"
description = "Tools for RGB-D data: OBJ and PLY mesh I/O, TUM and ScanNet dataset readers, FPFH features, correspondences and timing helpers"
requires-python = ">=3.10"
keywords = ["rgbd", "point cloud", "ply", "obj", "fpfh", "scannet", "tum", "3d reconstruction"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Multimedia :: Graphics :: 3D Modeling",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rgbdkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
