# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import time
import logging

from typing import Any, ClassVar
from pydantic import PrivateAttr, ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..capabilities.base import Capability, Context
from ..types.llm_types import decode_arguments
from ..types.tool_types import ToolInterface

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class BaseTool(ToolInterface):
    """Abstract base class for all primitive tools.

    Subclasses declare their arguments as pydantic fields and implement
    ``run``. The invocation context is available as ``self._context``.
    """

    # Class variables for tool metadata
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    # Universal tools are offered to every agent without being declared
    UNIVERSAL: ClassVar[bool] = False

    _context: Context = PrivateAttr()

    def __init__(self, context: Context, **data):
        super().__init__(**data)
        self._context = context

    @classmethod
    def json_schema(cls) -> dict[str, Any]:
        schema = cls.model_json_schema()
        schema.pop("title", None)
        schema.pop("description", None)
        for prop in schema.get("properties", {}).values():
            prop.pop("title", None)
        return schema

    @classmethod
    def as_capability(cls) -> "Primitive":
        return Primitive(cls)


class Primitive(Capability):
    """Capability adapter around a BaseTool subclass."""

    def __init__(self, tool_cls: type[BaseTool]):
        self.tool_cls = tool_cls
        self.name = tool_cls.TOOL_NAME
        self.description = tool_cls.TOOL_DESCRIPTION.strip()
        self.KIND = "universal" if tool_cls.UNIVERSAL else "primitive"

    @property
    def parameters(self) -> dict[str, Any]:
        return self.tool_cls.json_schema()

    def validate(self, message: Any, context: Context) -> BaseTool:
        if isinstance(message, str):
            try:
                args = decode_arguments(message)
            except (TypeError, ValueError) as e:
                raise ValidationError(self.name, str(e))
        elif isinstance(message, dict):
            args = {str(k): v for k, v in message.items()}
        elif message is None:
            args = {}
        else:
            raise ValidationError(
                self.name, f"expected an argument object, got {type(message).__name__}"
            )

        try:
            return self.tool_cls(context=context, **args)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(self.name, problems)
        except TypeError as e:
            raise ValidationError(self.name, str(e))

    def receive(self, message: Any, context: Context) -> str:
        tool = self.validate(message, context)

        start_time = time.time()
        result = tool.run()
        result.duration = time.time() - start_time
        if not result.success:
            logger.info(f"{self.name} failed: {result.errors}")
        return str(result)
