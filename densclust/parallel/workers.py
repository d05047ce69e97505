"""
并行工作池管理
把逐点的邻域查询按连续索引块分发给线程或进程执行
"""

import multiprocessing as mp
import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from multiprocessing import Pool
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config import DEFAULT_BACKEND, DEFAULT_CHUNK_SIZE, DEFAULT_N_JOBS
from ..exceptions import InvalidParameterError

BACKENDS = ('thread', 'process')

# 进程后端中每个工作进程持有的只读共享对象（由initializer设置）
_WORKER_SHARED: Any = None


def _init_worker(shared: Any) -> None:
    global _WORKER_SHARED
    _WORKER_SHARED = shared


def _run_chunk_in_process(func: Callable, start: int, end: int, args: tuple) -> Tuple[Any, float]:
    chunk_start = time.time()
    result = func(_WORKER_SHARED, start, end, *args)
    return result, time.time() - chunk_start


class TaskStatus(Enum):
    """任务状态枚举"""
    PENDING = "pending"
    COMPLETED = "completed"


@dataclass
class ChunkTask:
    """一个连续索引块上的计算任务"""
    id: int
    start: int
    end: int
    status: TaskStatus = TaskStatus.PENDING
    result: Any = None
    duration: Optional[float] = None

    @property
    def n_items(self) -> int:
        return self.end - self.start


def resolve_n_jobs(n_jobs: int) -> int:
    """
    解析并行度参数

    Args:
        n_jobs: 工作线程/进程数，-1表示使用所有CPU核心

    Returns:
        实际使用的工作者数量
    """
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, int) or n_jobs == 0 or n_jobs < -1:
        raise InvalidParameterError(f"n_jobs 必须是正整数或-1，实际为 {n_jobs!r}")
    return mp.cpu_count() if n_jobs == -1 else n_jobs


class WorkerPool:
    """工作池管理器"""

    def __init__(self, n_jobs: int = DEFAULT_N_JOBS, backend: str = DEFAULT_BACKEND,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, verbose: bool = False):
        """
        初始化工作池

        Args:
            n_jobs: 工作者数量，-1表示使用所有CPU核心，1表示在当前线程内串行执行
            backend: 'thread' 或 'process'
            chunk_size: 每个任务处理的连续点数
            verbose: 是否打印运行信息
        """
        if backend not in BACKENDS:
            raise InvalidParameterError(f"未知的并行后端: {backend!r}")
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size < 1:
            raise InvalidParameterError(f"chunk_size 必须是正整数，实际为 {chunk_size!r}")

        self.n_workers = resolve_n_jobs(n_jobs)
        self.backend = backend
        self.chunk_size = chunk_size
        self.verbose = verbose

        self.completed_tasks: List[ChunkTask] = []
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def partition(self, n_items: int) -> List[Tuple[int, int]]:
        """
        将索引范围划分为多个块

        Args:
            n_items: 总点数

        Returns:
            数据块列表，每个元素是(start_idx, end_idx)元组
        """
        chunks = []
        for start_idx in range(0, n_items, self.chunk_size):
            end_idx = min(start_idx + self.chunk_size, n_items)
            chunks.append((start_idx, end_idx))
        return chunks

    def map_chunks(self, func: Callable, n_items: int, shared: Any, *args) -> List[ChunkTask]:
        """
        在每个数据块上执行 func(shared, start, end, *args)

        各块之间没有顺序依赖，结果按块的顺序返回，调用方负责把结果写入互不重叠的位置。
        进程后端要求func和args可以被pickle。

        Args:
            func: 块处理函数
            n_items: 总点数
            shared: 只读共享对象（如邻域索引）
            *args: 传给func的额外参数

        Returns:
            已完成的任务列表
        """
        tasks = [ChunkTask(id=i, start=start, end=end)
                 for i, (start, end) in enumerate(self.partition(n_items))]
        self.start_time = time.time()

        n_workers = min(self.n_workers, len(tasks))
        if self.n_workers > 1 and 0 < len(tasks) < self.n_workers:
            warnings.warn(f"数据块数量({len(tasks)})少于工作者数量({self.n_workers})，"
                          f"只使用 {n_workers} 个工作者")

        if n_workers <= 1:
            self._run_inline(tasks, func, shared, args)
        elif self.backend == 'thread':
            self._run_threads(tasks, n_workers, func, shared, args)
        else:
            self._run_processes(tasks, n_workers, func, shared, args)

        self.end_time = time.time()
        self.completed_tasks.extend(tasks)
        return tasks

    def _run_inline(self, tasks: List[ChunkTask], func: Callable, shared: Any, args: tuple) -> None:
        for task in tasks:
            chunk_start = time.time()
            task.result = func(shared, task.start, task.end, *args)
            task.duration = time.time() - chunk_start
            task.status = TaskStatus.COMPLETED

    def _run_threads(self, tasks: List[ChunkTask], n_workers: int, func: Callable,
                     shared: Any, args: tuple) -> None:
        if self.verbose:
            print(f"使用 {n_workers} 个线程进行并行计算...")

        def run(task: ChunkTask) -> ChunkTask:
            chunk_start = time.time()
            task.result = func(shared, task.start, task.end, *args)
            task.duration = time.time() - chunk_start
            task.status = TaskStatus.COMPLETED
            return task

        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            # list()会等待全部任务完成，并把工作线程中的异常重新抛出
            list(executor.map(run, tasks))

    def _run_processes(self, tasks: List[ChunkTask], n_workers: int, func: Callable,
                       shared: Any, args: tuple) -> None:
        if self.verbose:
            print(f"使用 {n_workers} 个进程进行并行计算...")

        with Pool(processes=n_workers, initializer=_init_worker, initargs=(shared,)) as pool:
            async_results = [
                pool.apply_async(_run_chunk_in_process, args=(func, task.start, task.end, args))
                for task in tasks
            ]

            for task, async_result in zip(tasks, async_results):
                task.result, task.duration = async_result.get()
                task.status = TaskStatus.COMPLETED

    def get_pool_stats(self) -> Dict[str, Any]:
        """
        获取工作池统计信息

        Returns:
            统计信息字典
        """
        total_tasks = len(self.completed_tasks)
        total_processing_time = sum(t.duration or 0.0 for t in self.completed_tasks)

        return {
            'n_workers': self.n_workers,
            'backend': self.backend,
            'chunk_size': self.chunk_size,
            'total_tasks_completed': total_tasks,
            'total_processing_time': total_processing_time,
            'avg_processing_time_per_task': (total_processing_time / total_tasks
                                             if total_tasks > 0 else 0),
            'pool_duration': (self.end_time - self.start_time
                              if self.start_time and self.end_time else 0)
        }
