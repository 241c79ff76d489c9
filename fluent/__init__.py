from fluent.fluent_datatypes import (
    Chain, ChainItem, JumpItem, ExecutionOptions, Immediate, Deferred,
    ChainError, MethodNotFound, InvalidGoto, ExpressionEvaluationError,
)
from fluent.fluent_table import CapabilityTable, Operation, BoundOperation, bind, capability
from fluent.fluent_codec import encode, decode
from fluent.fluent_navigator import Navigator
from fluent.fluent_interpreter import Interpreter, run
from fluent.fluent_scheduler import Scheduler, LoopScheduler, TaskQueue
from fluent.fluent_runtime import fluent, to_chain, ChainRunner, ExecutionResult

__all__ = [
    "fluent", "to_chain", "run",
    "Chain", "ChainItem", "JumpItem", "ExecutionOptions", "Immediate", "Deferred",
    "ChainError", "MethodNotFound", "InvalidGoto", "ExpressionEvaluationError",
    "CapabilityTable", "Operation", "BoundOperation", "bind", "capability",
    "encode", "decode",
    "Navigator", "Interpreter",
    "Scheduler", "LoopScheduler", "TaskQueue",
    "ChainRunner", "ExecutionResult",
]
