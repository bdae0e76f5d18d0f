"""Accelerator backend handle.

The backend is created once per process, opened explicitly, injected into every
similarity computation that should run on the device, and closed at shutdown:

    backend = AcceleratorBackend()
    backend.open()
    ...
    backend.close()

or as a context manager. ``probe_backend`` performs the capability check once and
returns an opened handle, or None when no accelerator can be used.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from vecdbscan.exceptions import BackendUnavailableError

try:
    import torch  # type: ignore
    _TORCH_AVAILABLE = True
except ImportError:
    torch = None
    _TORCH_AVAILABLE = False

logger = logging.getLogger(__name__)


def detect_accelerator() -> Optional[str]:
    """
    Return the name of the first usable accelerator device ('mps' or 'cuda'), or None.

    A plain CPU is not an accelerator; callers that want the torch kernel on the CPU
    must request ``device="cpu"`` explicitly.
    """
    if not _TORCH_AVAILABLE:
        return None
    if torch.backends.mps.is_available():
        return 'mps'
    if torch.cuda.is_available():
        return 'cuda'
    return None


class AcceleratorBackend:
    def __init__(self, device: Optional[str] = None):
        """
        Args:
            device: Explicit torch device string ('cuda', 'cuda:1', 'mps', 'cpu').
                    None means auto-detect on open().
        """
        self.requested_device = device
        self.device = None

    @property
    def is_open(self) -> bool:
        return self.device is not None

    @property
    def name(self) -> str:
        return str(self.device) if self.device is not None else "closed"

    def open(self) -> "AcceleratorBackend":
        """Acquire the device. Raises BackendUnavailableError when it cannot be used."""
        if self.is_open:
            return self
        if not _TORCH_AVAILABLE:
            raise BackendUnavailableError("PyTorch is not available. Install torch to use the accelerated backend.")

        device_name = self.requested_device or detect_accelerator()
        if device_name is None:
            raise BackendUnavailableError("No accelerator adapter found")

        try:
            device = torch.device(device_name)
            # Allocating a tensor surfaces device creation failures here rather than mid-kernel
            torch.zeros(1, device=device)
        except Exception as e:
            raise BackendUnavailableError(f"Failed to create device '{device_name}': {e}") from e

        self.device = device
        logger.info(f"Accelerator backend opened on device: {self.device}")
        return self

    def synchronize(self) -> None:
        """Block until every kernel queued on the device has finished."""
        if not self.is_open:
            raise BackendUnavailableError("Accelerator backend is not open")
        if self.device.type == 'cuda':
            torch.cuda.synchronize(self.device)
        elif self.device.type == 'mps':
            torch.mps.synchronize()

    def pairwise_dot(self, buffer: np.ndarray, n_points: int, dim: int) -> np.ndarray:
        """
        Compute the dot product of every ordered pair of rows packed in ``buffer``.

        Each of the n_points² output cells is independent; the device is synchronized
        once after dispatch, before the output is read back.

        Args:
            buffer: Contiguous float32 buffer of length n_points * dim (row-major)
            n_points: Number of rows
            dim: Row length

        Returns:
            Flat float32 array of length n_points²; cell i * n_points + j holds row_i · row_j
        """
        if not self.is_open:
            raise BackendUnavailableError("Accelerator backend is not open")

        points = torch.from_numpy(buffer).to(self.device).view(n_points, dim)
        output = torch.matmul(points, points.T).reshape(-1)
        self.synchronize()
        return output.cpu().numpy()

    def close(self) -> None:
        if not self.is_open:
            return
        if self.device.type == 'cuda':
            torch.cuda.empty_cache()
        elif self.device.type == 'mps':
            torch.mps.empty_cache()
        logger.info(f"Accelerator backend on {self.device} closed")
        self.device = None

    def __enter__(self) -> "AcceleratorBackend":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"AcceleratorBackend(device={self.name!r})"


def probe_backend(device: Optional[str] = None) -> Optional[AcceleratorBackend]:
    """
    Try to open an accelerator backend once.

    Returns:
        An opened AcceleratorBackend, or None if no accelerator is usable
    """
    backend = AcceleratorBackend(device)
    try:
        return backend.open()
    except BackendUnavailableError as e:
        logger.info(f"No accelerated backend, using sequential similarity: {e}")
        return None
