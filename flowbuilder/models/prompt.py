"""Compiled prompt pipeline models."""
from pydantic import BaseModel, Field

from flowbuilder.models.graph import ROOT_USE_INPUT


class PromptStep(BaseModel):
    """One step of a compiled prompt pipeline."""

    id: str = Field(..., description="Node identifier")
    use_input: str = Field(
        ROOT_USE_INPUT,
        description="Parent node identifier, '0' for the entry node",
    )
    title: str = ""
    prompt: str = ""
    input: str = ""
    background_prompt: str = ""
    sort_order: int = 0

    def to_wire(self) -> dict:
        """Render in the format the generation engine expects."""
        return {
            "id": self.id,
            "use_input": self.use_input,
            "prompt": self.prompt,
            "Input": self.input,
            "Background_prompt": self.background_prompt,
        }


class PromptList(BaseModel):
    """Ordered prompt pipeline, evaluated by the engine in list order."""

    steps: list[PromptStep] = Field(default_factory=list)

    @property
    def entry(self) -> PromptStep:
        """The entry step, always evaluated last."""
        return self.steps[-1]

    def to_payload(self) -> dict:
        return {"promptList": [step.to_wire() for step in self.steps]}


class GenerationResult(BaseModel):
    """Output returned by the generation engine."""

    content: str
    metadata: dict = Field(default_factory=dict)
