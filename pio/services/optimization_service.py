"""Service for perceptual image optimization."""

import time
from typing import Dict, List, Optional, Tuple

from pio.config import Settings, settings as default_settings
from pio.core.codecs import Codec, get_codec
from pio.core.image import RasterImage
from pio.core.optimization import (
    PerceptualEvaluator,
    QualityTarget,
    SearchController,
    SearchResult,
    TrialScheduler,
    derive_target,
)
from pio.core.preprocessing import load_image
from pio.models.optimization import OptimizeRequest
from pio.utils.logging import LoggingContext, get_logger, new_run_id

logger = get_logger(__name__)


class OptimizationService:
    """Turns operator requests into quality searches."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        evaluator: Optional[PerceptualEvaluator] = None,
    ):
        self.settings = settings or default_settings
        self.evaluator = evaluator or PerceptualEvaluator()

    def build_targets(
        self, request: OptimizeRequest
    ) -> Tuple[List[Codec], Dict[str, QualityTarget]]:
        """Create the candidate codecs and their search targets.

        Raises:
            ConfigurationError: If explicit bounds fall outside a codec's range
        """
        codecs: List[Codec] = []
        targets: Dict[str, QualityTarget] = {}
        for name in request.formats:
            codec = get_codec(name, chroma_subsampling=request.chroma_subsampling)
            codecs.append(codec)
            targets[codec.name] = derive_target(
                codec,
                quality=request.quality,
                spread=request.spread,
                min_param=request.min_param,
                max_param=request.max_param,
                target_score=request.target_score,
            )
        return codecs, targets

    async def optimize_image(
        self, source: RasterImage, request: OptimizeRequest
    ) -> SearchResult:
        """Find the smallest acceptable encoding of a pre-processed image.

        Raises:
            NoViableEncodingError: If no candidate format produced a usable trial
        """
        codecs, targets = self.build_targets(request)
        trial_budget = request.trial_budget or self.settings.trial_budget
        max_workers = request.max_workers or self.settings.max_workers
        timeout = request.timeout or self.settings.search_timeout

        with LoggingContext(run_id=new_run_id()):
            start_time = time.time()
            logger.info(
                "Starting optimization",
                formats=[c.name for c in codecs],
                width=source.width,
                height=source.height,
                quality=request.quality,
                targets={
                    name: [t.min_param, t.max_param, round(t.target_score, 6)]
                    for name, t in targets.items()
                },
            )
            async with TrialScheduler(self.evaluator, max_workers=max_workers) as scheduler:
                controller = SearchController(
                    scheduler,
                    trial_budget=trial_budget,
                    background=self.settings.background_rgb,
                    timeout=timeout,
                )
                result = await controller.run(source, codecs, targets)

            logger.info(
                "Optimization finished",
                format=result.format,
                size=result.size,
                elapsed_ms=round((time.time() - start_time) * 1000, 1),
            )
            return result

    async def optimize_bytes(
        self, image_data: bytes, request: OptimizeRequest
    ) -> Tuple[SearchResult, str]:
        """Decode, pre-process and optimize an encoded input image.

        Returns:
            Tuple of (winning result, detected input format)
        """
        source, input_format = load_image(image_data)
        result = await self.optimize_image(source, request)
        return result, input_format
