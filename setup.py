"""interviewlens 打包配置。"""

from __future__ import annotations

from setuptools import find_packages, setup


VERSION = "0.1.0"


setup(
    name="interviewlens",
    version=VERSION,
    description="实时面试行为分析：多模态信号平滑、自适应采样与周期聚合",
    python_requires=">=3.9",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "pydantic>=2.0",
        "fastapi>=0.100",
        "uvicorn>=0.23",
        "numpy>=1.24",
    ],
    extras_require={
        "vision": [
            "opencv-python>=4.8",
            "mediapipe>=0.10",
        ],
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
)
