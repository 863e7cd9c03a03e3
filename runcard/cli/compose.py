import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from ..errors import DecodeFailure
from ..models.modes import ColorMode, CropSensitivity
from ..pipeline.run_composer import compose_record_image, generate_filename
from ..services.image_service import ImageService


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
        datefmt='%H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runcard-compose",
        description="Put a running-record screenshot on a photo and export it at full resolution.",
    )
    parser.add_argument("background", type=Path, help="background photo")
    parser.add_argument("record", type=Path, help="running-record screenshot")
    parser.add_argument("--color", default=ColorMode.WHITE.value,
                        choices=[m.value for m in ColorMode], help="record text colour")
    parser.add_argument("--sensitivity", default=os.getenv("CROP_SENSITIVITY", CropSensitivity.STANDARD.value),
                        choices=[s.value for s in CropSensitivity], help="smart-crop preset")
    parser.add_argument("--output-dir", type=Path, default=Path(os.getenv("OUTPUT_DIR", ".")),
                        help="where the PNG is written")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    image_service = ImageService()

    print(f"Composing {args.record.name} onto {args.background.name} ({args.color}, {args.sensitivity})...")
    try:
        result = compose_record_image(args.background, args.record, args.color, args.sensitivity)
    except DecodeFailure as err:
        print(f"Could not read input: {err}", file=sys.stderr)
        return 1

    result.path = args.output_dir / generate_filename()
    image_service.save(result)
    print(f"Saved {result.width}x{result.height} image to {result.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
