"""Configuration schema for the tiling pipeline."""

from dataclasses import dataclass, field
from pathlib import Path
import yaml

from .errors import ConfigError

DEFAULT_EXCLUDE_PREFIXES = (
    "NegControlProbe_",
    "antisense_",
    "NegControlCodeword_",
    "BLANK_",
    "UnassignedCodeword_",
)


def default_exclude_prefixes() -> list[str]:
    """Feature name prefixes of control probes and unassigned codewords."""
    return list(DEFAULT_EXCLUDE_PREFIXES)


@dataclass
class TileConfig:
    """Configuration for the tiling pipeline."""

    # Input/Output
    input_path: Path
    output_dir: Path = Path(".")

    # Filtering
    min_qv: float = 20.0
    exclude_prefixes: list[str] = field(default_factory=default_exclude_prefixes)
    nucleus_only: bool = False  # Unassign transcripts outside the nucleus

    # Tiling (microns)
    width: float = 4000.0
    height: float = 4000.0
    overlap: float = 500.0
    minimal_transcripts: int = 100000  # Tiles below this are expanded by `overlap`

    # Resources
    n_workers: int = 4  # Threads computing tiles
    batch_size: int = 1_000_000  # Rows read per input chunk

    @classmethod
    def from_yaml(cls, path: Path) -> "TileConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        # Convert path strings to Path objects
        if "input_path" in data:
            data["input_path"] = Path(data["input_path"])
        if "output_dir" in data:
            data["output_dir"] = Path(data["output_dir"])

        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid configuration file {path}: {e}") from e

    def to_dict(self) -> dict:
        return {
            "input_path": str(self.input_path),
            "output_dir": str(self.output_dir),
            "min_qv": float(self.min_qv),
            "exclude_prefixes": list(self.exclude_prefixes),
            "nucleus_only": bool(self.nucleus_only),
            "width": float(self.width),
            "height": float(self.height),
            "overlap": float(self.overlap),
            "minimal_transcripts": int(self.minimal_transcripts),
            "n_workers": int(self.n_workers),
            "batch_size": int(self.batch_size),
        }

    def to_yaml(self, path: Path) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not Path(self.input_path).exists():
            raise FileNotFoundError(f"Input file not found: {self.input_path}")

        if self.width <= 0 or self.height <= 0:
            raise ConfigError(
                f"Tile width and height must be positive, got {self.width} x {self.height}"
            )

        if self.overlap <= 0:
            raise ConfigError(f"overlap must be positive, got {self.overlap}")

        if self.overlap >= self.width:
            raise ConfigError("The width of a tile cannot be smaller than the overlap.")

        if self.overlap >= self.height:
            raise ConfigError("The height of a tile cannot be smaller than the overlap.")

        if self.min_qv < 0:
            raise ConfigError(f"min_qv must be >= 0, got {self.min_qv}")

        if self.minimal_transcripts < 0:
            raise ConfigError(
                f"minimal_transcripts must be >= 0, got {self.minimal_transcripts}"
            )

        if self.n_workers < 1:
            raise ConfigError(f"n_workers must be >= 1, got {self.n_workers}")

        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1, got {self.batch_size}")

        # Drop blanks and duplicates, keep order
        seen: set[str] = set()
        prefixes: list[str] = []
        for p in self.exclude_prefixes:
            p = str(p)
            if not p or p in seen:
                continue
            seen.add(p)
            prefixes.append(p)
        self.exclude_prefixes = prefixes
