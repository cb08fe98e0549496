"""Worker package exports."""

from helios_worker.workers.service_worker import ServiceWorker, WorkerPool

__all__ = ["ServiceWorker", "WorkerPool"]
