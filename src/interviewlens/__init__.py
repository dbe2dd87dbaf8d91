"""面试行为实时分析：多模态信号平滑与周期聚合。"""

__version__ = "0.1.0"
