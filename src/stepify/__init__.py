"""stepify: callback-driven sequential and parallel step execution.

A task is an ordered list of named steps. Each step does one unit of
(usually asynchronous) work and says explicitly when it is finished and
where execution goes next.
"""

__version__ = "0.1.0"

from stepify.engine import Step, Task, TaskOutcome
from stepify.workflow import Workflow, WorkflowResult

__all__ = ["__version__", "Step", "Task", "TaskOutcome", "Workflow", "WorkflowResult"]
