"""
访问状态跟踪
每个点占用一个比特位，记录遍历过程中的已访问/已处理状态
"""

import numpy as np

from ..exceptions import IndexOutOfRangeError


class VisitedTracker:
    """定长比特数组，初始全部为未访问"""

    def __init__(self, n_points: int):
        """
        Args:
            n_points: 点集大小，创建后不可改变
        """
        self.n_points = int(n_points)
        self._bits = np.zeros((self.n_points + 7) // 8, dtype=np.uint8)

    def __len__(self) -> int:
        return self.n_points

    def _locate(self, idx: int):
        if not 0 <= idx < self.n_points:
            raise IndexOutOfRangeError(f"点索引 {idx} 超出范围 [0, {self.n_points})")
        return idx >> 3, np.uint8(1 << (idx & 7))

    def is_set(self, idx: int) -> bool:
        """判断点是否已访问"""
        byte, mask = self._locate(idx)
        return bool(self._bits[byte] & mask)

    def set(self, idx: int) -> None:
        """标记点为已访问"""
        byte, mask = self._locate(idx)
        self._bits[byte] |= mask

    def test_and_set(self, idx: int) -> bool:
        """
        标记点为已访问，并返回标记之前的状态

        Returns:
            如果该点之前已经访问过返回True
        """
        byte, mask = self._locate(idx)
        was_set = bool(self._bits[byte] & mask)
        self._bits[byte] |= mask
        return was_set
