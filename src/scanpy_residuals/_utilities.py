import contextlib

import joblib
import scanpy as sc


def session_info() -> None:
    import datetime
    import sys

    print("*" * 64)
    print(f"Execution date and time: {datetime.datetime.now()}")
    print("*" * 64)
    print(f"Python executable: {sys.executable}")
    print("*" * 64)
    sc.logging.print_header()
    print("*" * 64)


def set_env(n_jobs: int = 8, verbosity: int = 4, print_info: bool = True) -> None:
    sc.settings.verbosity = verbosity
    sc.settings.n_jobs = n_jobs
    if print_info:
        session_info()


def resolve_n_jobs(n_jobs) -> int:
    _n_jobs = sc.settings.n_jobs if n_jobs is None else n_jobs
    return joblib.effective_n_jobs(_n_jobs)


@contextlib.contextmanager
def tqdm_joblib(tqdm_object):
    """Context manager to patch joblib to report into tqdm progress bar given as argument"""

    def tqdm_print_progress(self):
        if self.n_completed_tasks > tqdm_object.n:
            n_completed = self.n_completed_tasks - tqdm_object.n
            tqdm_object.update(n=n_completed)

    original_print_progress = joblib.parallel.Parallel.print_progress
    joblib.parallel.Parallel.print_progress = tqdm_print_progress

    try:
        yield tqdm_object
    finally:
        joblib.parallel.Parallel.print_progress = original_print_progress
        tqdm_object.close()


__all__ = [
    "session_info",
    "set_env",
    "resolve_n_jobs",
    "tqdm_joblib",
]
