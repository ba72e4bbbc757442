from .build import ExternalClientBuild, PythonClientBuild
from .orchestrator import ProcessOrchestrator
from .records import ExitStatus, ProcessRecord, Role, RunSummary

__all__ = [
    "ExitStatus",
    "ExternalClientBuild",
    "ProcessOrchestrator",
    "ProcessRecord",
    "PythonClientBuild",
    "Role",
    "RunSummary",
]
