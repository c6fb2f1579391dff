"""Setup script for the fftconform conformance harness."""

from setuptools import setup, find_packages

__version__ = "0.1.0"

install_requires = [
    "torch",
    "numpy",
    "pyyaml",
]

extras_require = {
    "test": ["pytest"],
}

setup(
    name="fftconform",
    description="FFT plan conformance cases run through a torch.fft porting layer",
    python_requires=">=3.9",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"fftconform": ["cases/*.yaml", "cases/*.json"]},
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={"console_scripts": ["fftconform=fftconform.cli:run"]},
    version=__version__,
)
