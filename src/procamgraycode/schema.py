"""Session configuration for Gray code projector-camera capture.

Defaults match a 1280x800 projector placed to the right of a 3440 px wide
primary monitor, with 5x5 display pixels per Gray code cell.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigurationError


class SessionConfig(BaseModel):
    """Everything a capture/decode session needs to know up front.

    Build instances with :meth:`create` or :meth:`from_json` so invalid
    settings surface as :class:`ConfigurationError` rather than a raw
    pydantic error.
    """

    # -- Projector display geometry -------------------------------------------

    display_width: int = Field(
        default=1280,
        ge=1,
        le=7680,
        description="Projector output width in display pixels.",
    )

    display_height: int = Field(
        default=800,
        ge=1,
        le=4320,
        description="Projector output height in display pixels.",
    )

    display_x: int = Field(
        default=3440,
        description="Horizontal desktop offset of the projector output.",
    )

    display_y: int = Field(
        default=0,
        description="Vertical desktop offset of the projector output.",
    )

    # -- Pattern resolution ---------------------------------------------------

    step_x: int = Field(
        default=5,
        ge=1,
        description="Display pixels per Gray code cell, horizontally.",
    )

    step_y: int = Field(
        default=5,
        ge=1,
        description="Display pixels per Gray code cell, vertically.",
    )

    pattern_width: int | None = Field(
        default=None,
        ge=1,
        description="Gray code columns. Defaults to display_width // step_x.",
    )

    pattern_height: int | None = Field(
        default=None,
        ge=1,
        description="Gray code rows. Defaults to display_height // step_y.",
    )

    # -- Decode thresholds ----------------------------------------------------

    white_threshold: float = Field(
        default=5.0,
        gt=0,
        le=255,
        description=(
            "Minimum |positive - negative| intensity for a bit to count as "
            "decided. Any undecided bit drops the pixel."
        ),
    )

    black_threshold: float = Field(
        default=40.0,
        gt=0,
        le=255,
        description=(
            "Minimum white - black intensity for a camera pixel to count as "
            "lit by the projector (shadow mask)."
        ),
    )

    # -- Capture --------------------------------------------------------------

    settle_ms: int = Field(
        default=400,
        ge=0,
        le=60000,
        description=(
            "Wait after showing each pattern before grabbing the camera "
            "frame. Tune per camera (exposure, buffering, denoising)."
        ),
    )

    camera_index: int = Field(
        default=0,
        ge=0,
        description="OpenCV capture device index.",
    )

    # -- Output ---------------------------------------------------------------

    output_dir: Path = Field(
        default=Path("."),
        description="Directory receiving captured/, c2p.csv and the visualization.",
    )

    save_frames: bool = Field(
        default=True,
        description="Write every captured frame as captured/cam_NN.png.",
    )

    min_coverage_pct: float = Field(
        default=1.0,
        ge=0,
        le=100,
        description="Warn when fewer camera pixels than this decode.",
    )

    decode_workers: int | None = Field(
        default=None,
        ge=1,
        description="Decode thread count. None lets the executor decide.",
    )

    @model_validator(mode="after")
    def _resolve_pattern_size(self) -> SessionConfig:
        if self.pattern_width is None:
            self.pattern_width = self.display_width // self.step_x
        if self.pattern_height is None:
            self.pattern_height = self.display_height // self.step_y
        if self.pattern_width < 1 or self.pattern_height < 1:
            raise ValueError(
                f"stride {self.step_x}x{self.step_y} leaves no pattern cells on "
                f"a {self.display_width}x{self.display_height} display"
            )
        if self.pattern_width * self.step_x > self.display_width:
            raise ValueError(
                f"pattern_width {self.pattern_width} x step_x {self.step_x} "
                f"exceeds display_width {self.display_width}"
            )
        if self.pattern_height * self.step_y > self.display_height:
            raise ValueError(
                f"pattern_height {self.pattern_height} x step_y {self.step_y} "
                f"exceeds display_height {self.display_height}"
            )
        return self

    # -- Construction ---------------------------------------------------------

    @classmethod
    def create(cls, **values) -> SessionConfig:
        """Validate *values* and return a config, or raise ConfigurationError."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def from_json(cls, path: str | Path, **overrides) -> SessionConfig:
        """Load a config from a JSON file, with keyword overrides on top."""
        p = Path(path)
        try:
            data = json.loads(p.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"cannot read config {p}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{p}: expected a JSON object")
        data.update(overrides)
        return cls.create(**data)

    # -- Derived values -------------------------------------------------------

    @property
    def pattern_size(self) -> tuple[int, int]:
        return self.pattern_width, self.pattern_height

    @property
    def display_size(self) -> tuple[int, int]:
        return self.display_width, self.display_height

    @property
    def capture_dir(self) -> Path:
        return self.output_dir / "captured"

    @property
    def csv_path(self) -> Path:
        return self.output_dir / "c2p.csv"

    @property
    def visualization_path(self) -> Path:
        return self.output_dir / "c2p_viz.png"
