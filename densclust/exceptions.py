"""
异常定义
所有输入校验都在计算开始前完成，出错时不会留下部分结果
"""


class DensClustError(Exception):
    """densclust所有异常的基类"""


class InvalidParameterError(DensClustError, ValueError):
    """参数取值非法，例如 eps <= 0 或 min_samples < 1"""


class ShapeMismatchError(DensClustError, ValueError):
    """点集维度不一致，或辅助数组长度不匹配"""


class NonFiniteInputError(DensClustError, ValueError):
    """坐标中包含NaN或无穷大"""


class IndexOutOfRangeError(DensClustError, IndexError):
    """点索引越界，属于程序内部错误而非用户输入问题"""
