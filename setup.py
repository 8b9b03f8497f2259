from setuptools import setup, find_packages

setup(
    name="planta-gochi",
    version="0.1.0",
    description="1-bit QR bitmaps and a serial hardware portal for the Planta-gochi OLED",
    author="Planta-gochi",
    packages=find_packages(include=["gochi", "gochi.*"]),
    python_requires=">=3.11",
    install_requires=[
        "aioserial>=1.3.0",
        "fastapi>=0.110",
        "numpy>=1.26",
        "Pillow>=10.0",
        "pydantic>=2.0",
        "pyserial>=3.5",
        "uvicorn>=0.27",
    ],
    extras_require={
        "test": [
            "httpx>=0.27",
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    tests_require=["pytest", "pytest-asyncio", "httpx"],
    entry_points={
        "console_scripts": [
            "gochi=gochi.main:main",
        ],
    },
)
