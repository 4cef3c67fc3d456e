"""
Collective communication used by the metadata routines.

The metadata code only needs a handful of collectives: an all-reduce, an
all-gather of byte buffers, a broadcast and a barrier. All of them block until
every process of the group has contributed.

- SerialController: a group of one process, nothing is communicated
- MPIController: wraps an mpi4py communicator (pip install amrmeta[mpi])
- ThreadGroup: runs the ranks as threads of one interpreter
"""

import abc
import threading
import numpy as np
from functools import reduce as _fold
from typing import Any, Callable, List, Optional

from loguru import logger

REDUCE_OPS = {
    "min": np.minimum,
    "max": np.maximum,
    "sum": np.add,
}


def _check_op(op: str):
    if op not in REDUCE_OPS:
        raise ValueError(f"Unknown reduction operation '{op}', expected one of {list(REDUCE_OPS)}")


class Controller(abc.ABC):
    """
    Abstract process group. Every method except rank/size is collective and
    must be called by all processes of the group in the same order.
    """

    @property
    @abc.abstractmethod
    def rank(self) -> int:
        ...

    @property
    @abc.abstractmethod
    def size(self) -> int:
        ...

    @abc.abstractmethod
    def reduce(self, value, op: str) -> np.ndarray:
        """Element-wise reduction of value over all processes, the result is returned on every process"""

    @abc.abstractmethod
    def all_gather(self, buffer: bytes) -> List[bytes]:
        """The buffers of all processes, indexed by rank"""

    @abc.abstractmethod
    def broadcast(self, buffer: bytes, root: int = 0) -> bytes:
        """The buffer of the root process"""

    @abc.abstractmethod
    def barrier(self):
        ...


class SerialController(Controller):

    @property
    def rank(self) -> int:
        return 0

    @property
    def size(self) -> int:
        return 1

    def reduce(self, value, op: str) -> np.ndarray:
        _check_op(op)
        return np.array(value)

    def all_gather(self, buffer: bytes) -> List[bytes]:
        return [bytes(buffer)]

    def broadcast(self, buffer: bytes, root: int = 0) -> bytes:
        if root != 0:
            raise ValueError(f"root {root} out of range for a single process")
        return bytes(buffer)

    def barrier(self):
        pass


class MPIController(Controller):
    """
    Controller over an mpi4py communicator, COMM_WORLD by default
    """

    def __init__(self, comm=None):
        from mpi4py import MPI

        self.comm = MPI.COMM_WORLD if comm is None else comm
        self._ops = {
            "min": MPI.MIN,
            "max": MPI.MAX,
            "sum": MPI.SUM,
        }

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()

    @property
    def size(self) -> int:
        return self.comm.Get_size()

    def reduce(self, value, op: str) -> np.ndarray:
        _check_op(op)
        sendbuf = np.ascontiguousarray(value)
        recvbuf = np.empty_like(sendbuf)
        self.comm.Allreduce(sendbuf, recvbuf, op=self._ops[op])
        return recvbuf

    def all_gather(self, buffer: bytes) -> List[bytes]:
        return self.comm.allgather(bytes(buffer))

    def broadcast(self, buffer: bytes, root: int = 0) -> bytes:
        return self.comm.bcast(bytes(buffer) if self.rank == root else None, root=root)

    def barrier(self):
        self.comm.Barrier()


class ThreadGroup:
    """
    A process group whose ranks are threads of this interpreter.

    >>> group = ThreadGroup(4)
    >>> group.run(lambda controller: controller.rank)
    [0, 1, 2, 3]
    """

    def __init__(self, size: int):
        if size < 1:
            raise ValueError(f"group size must be positive, got {size}")
        self.size = size
        self._barrier = threading.Barrier(size)
        self._slots: List[Any] = [None] * size
        self.controllers = [ThreadController(self, rank) for rank in range(size)]

    def exchange(self, rank: int, value) -> List[Any]:
        """
        Deposit a value and return the values of all ranks once every rank has deposited
        """
        self._slots[rank] = value
        self._barrier.wait()
        values = list(self._slots)
        # nobody may overwrite a slot before everyone has read them
        self._barrier.wait()
        return values

    def run(self, target: Callable[['ThreadController'], Any]) -> List[Any]:
        """
        Run target(controller) on every rank, return the results ordered by rank.
        The first exception raised by any rank is re-raised here.
        """
        results: List[Any] = [None] * self.size
        errors: List[Optional[BaseException]] = [None] * self.size

        def work(controller: ThreadController):
            try:
                results[controller.rank] = target(controller)
            except BaseException as exc:
                errors[controller.rank] = exc
                # peers blocked in a collective get BrokenBarrierError instead of hanging
                self._barrier.abort()

        threads = [threading.Thread(target=work, args=(c,), name=f"rank-{c.rank}") for c in self.controllers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        failed = [exc for exc in errors if exc is not None]
        if failed:
            # report the root cause rather than a peer's broken barrier
            root_causes = [exc for exc in failed if not isinstance(exc, threading.BrokenBarrierError)]
            self._barrier.reset()
            logger.debug(f"Thread group failed on {len(failed)} of {self.size} ranks")
            raise (root_causes or failed)[0]

        return results


class ThreadController(Controller):

    def __init__(self, group: ThreadGroup, rank: int):
        self.group = group
        self._rank = rank

    @property
    def rank(self) -> int:
        return self._rank

    @property
    def size(self) -> int:
        return self.group.size

    def reduce(self, value, op: str) -> np.ndarray:
        _check_op(op)
        values = self.group.exchange(self._rank, np.array(value))
        return _fold(REDUCE_OPS[op], values)

    def all_gather(self, buffer: bytes) -> List[bytes]:
        return self.group.exchange(self._rank, bytes(buffer))

    def broadcast(self, buffer: bytes, root: int = 0) -> bytes:
        if not 0 <= root < self.size:
            raise ValueError(f"root {root} out of range for a group of {self.size}")
        return self.group.exchange(self._rank, bytes(buffer))[root]

    def barrier(self):
        self.group.exchange(self._rank, None)
