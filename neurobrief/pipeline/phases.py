"""The fixed, totally ordered pipeline phases."""

from enum import Enum


class PipelinePhase(str, Enum):
    """Pipeline phases in order of execution."""

    SCRAPE = "scrape"
    GPT = "gpt"
    ENRICH = "enrich"
    MODERATE = "moderate"
    EMBED = "embed"
    AUDIO = "audio"
    PODCAST = "podcast"
    FINAL = "final"

    @property
    def order(self) -> int:
        return PHASE_ORDER[self]

    @classmethod
    def parse(cls, token: str) -> "PipelinePhase | None":
        """Phase for a token, or None when it is not a known phase."""
        try:
            return cls(token)
        except ValueError:
            return None


PIPELINE_PHASES: tuple[PipelinePhase, ...] = tuple(PipelinePhase)

PHASE_ORDER: dict[PipelinePhase, int] = {
    phase: index for index, phase in enumerate(PIPELINE_PHASES)
}
