"""Code executors - turn a validated change request into applied source.

The registry only records the result of execution. Real executors compile
or hot-reload the source in the host framework; they live outside this
package and implement CodeExecutor.
"""

from abc import ABC, abstractmethod

from componentos.core.components.models import (
    ChangeErrorCode,
    CodeChangeRequest,
    CodeChangeResult,
)
from componentos.core.components.validation import check_balanced_delimiters


class CodeExecutor(ABC):
    """Base class for code executors."""

    @abstractmethod
    async def execute(self, request: CodeChangeRequest) -> CodeChangeResult:
        """Compile or apply the requested source.

        Args:
            request: The change request (source already validated)

        Returns:
            Result whose new_source_code is the source that should be
            recorded on success
        """


class PassthroughExecutor(CodeExecutor):
    """Executor that accepts any structurally balanced source unchanged."""

    async def execute(self, request: CodeChangeRequest) -> CodeChangeResult:
        syntax_error = check_balanced_delimiters(request.source_code)
        if syntax_error:
            return CodeChangeResult.failure(
                request.component_id,
                f"Transpilation failed: {syntax_error}",
                ChangeErrorCode.EXECUTION_FAILED,
            )

        return CodeChangeResult(
            success=True,
            component_id=request.component_id,
            new_source_code=request.source_code,
        )
