class PipelineConfigError(ValueError):
    """
    Raised when a pipeline or plugin configuration is rejected at deploy time.
    The CLI reports it without a traceback.
    """


class WorkflowFailedError(RuntimeError):
    """Raised when a workflow run ends because a stage failed."""

    def __init__(self, app_name: str, stage_name: str, cause: BaseException):
        super().__init__(f"Workflow for '{app_name}' failed in stage '{stage_name}': {cause}")
        self.app_name = app_name
        self.stage_name = stage_name
        self.cause = cause
