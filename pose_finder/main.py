# pose_finder/main.py
import argparse
import logging
import os
import sys
import yaml

from pose_decoder.common.enums import LogLevel
from pose_decoder.processing.pose_decoder import PoseDecoder
from pose_decoder.processing.pose_net_output import PoseNetOutput

logger = logging.getLogger("pose_finder")

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config.yaml')

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Decode PoseNet model outputs into poses.")
    parser.add_argument('tensors', help="Path to an .npz archive holding heatmap, offsets, displacementFwd and displacementBwd.")
    parser.add_argument('--image-size', nargs=2, type=float, required=True, metavar=('WIDTH', 'HEIGHT'),
                        help="Size of the original image the model input was resized from.")
    parser.add_argument('--config', default=DEFAULT_CONFIG_PATH, help="Path to the YAML configuration.")
    parser.add_argument('--algorithm', choices=['single', 'multiple'], help="Override the configured algorithm.")
    return parser.parse_args(argv)

def main(argv=None) -> int:
    """
    Loads the configuration and model outputs, decodes them and prints the result as JSON.
    """
    args = parse_args(argv)

    try:
        with open(args.config, 'r') as f:
            config = yaml.safe_load(f) or {}
        if not isinstance(config, dict):
            raise ValueError(f"Expected a mapping at the top of {args.config}")

        logging.basicConfig(
            level=LogLevel((config.get('logging') or {}).get('level', LogLevel.INFO.value)).value,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        decoder = PoseDecoder(config['decoder'] or {})
        output = PoseNetOutput.from_npz(
            args.tensors,
            model_input_size=tuple(config['model']['input_size']),
            output_stride=config['model']['output_stride'],
            topology=decoder.topology,
        )
        result = decoder.decode(output, tuple(args.image_size), algorithm=args.algorithm)
    except (OSError, yaml.YAMLError) as e:
        print(f"ERROR: Failed to initialize. {e}", file=sys.stderr)
        return 1
    except KeyError as e:
        print(f"ERROR: Missing configuration key or model output: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"ERROR: Invalid configuration or model outputs. {e}", file=sys.stderr)
        return 1

    print(result.model_dump_json(indent=2))
    return 0

if __name__ == "__main__":
    sys.exit(main())
