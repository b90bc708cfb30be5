# pose_finder/pose_decoder/processing/pose_decoder.py
import logging
import math
import time
from typing import Optional, Tuple, Union

from ..common.enums import Algorithm, DecodeStatus
from ..common.models import DecodeResult, PoseBuilderConfiguration
from ..common.topology import POSENET_TOPOLOGY, Topology
from .multiple_pose import MultiplePoseBuilder
from .pose_net_output import PoseNetOutput
from .single_pose import SinglePoseBuilder

logger = logging.getLogger(__name__)

class PoseDecoder:
    """
    Turns PoseNet model outputs into poses using the configured assembly algorithm.

    The decoder holds no per-call state, so one instance can serve concurrent callers as long
    as each call is given its own outputs.
    """

    def __init__(self, config: dict, topology: Topology = POSENET_TOPOLOGY):
        self.config = config
        self.topology = topology
        self.algorithm = Algorithm(config.get('algorithm', Algorithm.MULTIPLE.value))
        self.configuration = PoseBuilderConfiguration(**(config.get('builder') or {}))
        logger.debug("PoseDecoder configured for %s poses with %s", self.algorithm.value, self.configuration)

    def create_output(self, heatmap, offsets, forward_displacement_map, backward_displacement_map,
                      model_input_size: Tuple[float, float], output_stride: int) -> PoseNetOutput:
        """Wraps raw model tensors using this decoder's topology."""
        return PoseNetOutput(heatmap, offsets, forward_displacement_map, backward_displacement_map,
                             model_input_size=model_input_size,
                             output_stride=output_stride,
                             topology=self.topology)

    def decode(self,
               output: PoseNetOutput,
               image_size: Tuple[float, float],
               algorithm: Optional[Union[Algorithm, str]] = None) -> DecodeResult:
        """Assembles poses from `output`, with positions mapped onto an image of `image_size` (width, height)."""
        if output.topology.joints != self.topology.joints or output.topology.edges != self.topology.edges:
            raise ValueError(f"Output topology {output.topology} does not match decoder topology {self.topology}")
        if len(image_size) != 2 or not all(math.isfinite(size) and size > 0 for size in image_size):
            raise ValueError(f"Image size must be a positive (width, height), got {tuple(image_size)}")

        algorithm = Algorithm(algorithm) if algorithm is not None else self.algorithm
        start_time = time.perf_counter()

        if algorithm is Algorithm.SINGLE:
            poses = [SinglePoseBuilder(output, self.configuration, image_size).build()]
        else:
            poses = MultiplePoseBuilder(output, self.configuration, image_size).build()

        processing_time_ms = (time.perf_counter() - start_time) * 1000

        detected = any(pose.valid_joints for pose in poses)
        result = DecodeResult(
            algorithm=algorithm,
            status=DecodeStatus.DETECTED if detected else DecodeStatus.NO_POSE,
            image_size=image_size,
            processing_time_ms=processing_time_ms,
            poses=poses,
        )
        logger.info("Decoded %d pose(s) with the %s algorithm in %.1f ms",
                    len(poses), algorithm.value, processing_time_ms)
        return result
