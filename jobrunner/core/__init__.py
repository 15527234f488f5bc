from .errors import (
  JobRunnerError,
  JobValidationError,
  TypeNotFound,
  TypeNotPermitted,
  MethodNotFound,
  MethodNotPublic,
  IntrospectionError,
)
from .target import Target, InvocationRequest
from .validator import JobValidator
from .runner import JobRunner, JobOutcome

__all__ = [
  "JobRunnerError",
  "JobValidationError",
  "TypeNotFound",
  "TypeNotPermitted",
  "MethodNotFound",
  "MethodNotPublic",
  "IntrospectionError",
  "Target",
  "InvocationRequest",
  "JobValidator",
  "JobRunner",
  "JobOutcome",
]
