"""
Ring Localization Pipeline

Orchestrates all modules to turn a camera frame into a distance and
bearing to the orange ring.
Process: Segmentation -> Contour Location -> Triangulation (-> Overlay)

Usage:
    python pipeline.py <image_directory> [--output <output_dir>] [--visualize]
"""

import threading
from abc import ABC, abstractmethod
import cv2
import numpy as np
import sys
import argparse
from pathlib import Path

from ring_vision import (Segmenter, ContourLocator, Triangulator, OverlayRenderer,
                         DiagnosticStream, LocalizationResult, NO_TARGET)
from ring_vision.errors import FrameSizeMismatch
from ring_vision.sources import ImageFolderSource
from ring_vision.triangulation import center_offset
from ring_vision.visualization import add_label_to_image
from config import CameraGeometry, PipelineConfig


class VisionPipeline(ABC):
    """A per-frame processing strategy."""

    @abstractmethod
    def process(self, frame: np.ndarray):
        ...


class FrameCounterPipeline(VisionPipeline):
    """Counts the frames it has seen."""

    def __init__(self):
        self._lock = threading.Lock()
        self.count = 0

    def process(self, frame: np.ndarray) -> int:
        with self._lock:
            self.count += 1
            return self.count


class RingLocatorPipeline(VisionPipeline):
    """Main pipeline for orange ring localization."""

    def __init__(self,
                 geometry: CameraGeometry = None,
                 output: DiagnosticStream = None,
                 stream_config: dict = None):
        """
        Initialize all module detectors.

        Args:
            geometry: Camera geometry, PipelineConfig.CAMERA_GEOMETRY if None
            output: Stream receiving the annotated mask each frame
            stream_config: Output resolution, PipelineConfig.OUTPUT_STREAM if None
        """
        self.segmenter = Segmenter()
        self.locator = ContourLocator()
        self.triangulator = Triangulator(geometry)
        self.renderer = OverlayRenderer()
        self.output = output

        self.stream_config = stream_config or PipelineConfig.OUTPUT_STREAM
        self.width = self.stream_config['WIDTH']
        self.height = self.stream_config['HEIGHT']

    def check_size(self, frame: np.ndarray) -> None:
        h, w = frame.shape[:2]
        if (w, h) != (self.width, self.height):
            raise FrameSizeMismatch((self.width, self.height), (w, h))

    def analyze(self, frame: np.ndarray) -> dict:
        """
        Run full pipeline on a frame.

        Args:
            frame: BGR input image

        Returns:
            Dictionary with all intermediate and final results
        """
        results = {'result': NO_TARGET, 'extremes': None}

        # Step 1: Segmentation
        mask = self.segmenter.segment(frame)
        results['mask'] = mask
        if mask.size == 0:
            return results
        self.check_size(frame)

        # Step 2: Noise suppression and contour extremes
        cleaned = self.locator.clean(mask)
        results['cleaned'] = cleaned
        extremes = self.locator.find_extremes(cleaned)
        results['extremes'] = extremes

        # Step 3: Diagnostic overlay
        if extremes is None:
            left, right, offset = None, None, 0
        else:
            left, right = extremes
            offset = center_offset(left, right)
        results['overlay'] = self.renderer.render(cleaned, left, right, self.width, self.height, offset)

        # Step 4: Triangulation
        if extremes is not None:
            results['result'] = self.triangulator.triangulate(left, right, self.width)

        return results

    def process(self, frame: np.ndarray) -> LocalizationResult:
        results = self.analyze(frame)
        if self.output is not None and 'overlay' in results:
            self.output.put_frame(results['overlay'])
        return results['result']


def main():
    parser = argparse.ArgumentParser(description='Orange Ring Localization Pipeline')
    parser.add_argument('input_dir', type=str, help='Directory containing input images')
    parser.add_argument('--output', '-o', type=str, help='Output directory (default: input_dir/pipeline_results)')
    parser.add_argument('--visualize', '-v', action='store_true', help='Save overlay images')

    args = parser.parse_args()

    input_dir = Path(args.input_dir)
    if not input_dir.exists():
        print(f"Error: Input directory does not exist: {input_dir}")
        sys.exit(1)

    if args.output:
        output_dir = Path(args.output)
    else:
        output_dir = input_dir / "pipeline_results"

    image_files = ImageFolderSource.find_images(input_dir)
    print(f"Found {len(image_files)} image(s) to process\n")

    if not image_files:
        print("No images found!")
        sys.exit(1)

    if args.visualize:
        output_dir.mkdir(exist_ok=True, parents=True)

    pipeline = RingLocatorPipeline()
    size = (pipeline.width, pipeline.height)

    for idx, img_path in enumerate(image_files, 1):
        print(f"[{idx}/{len(image_files)}] Processing {img_path.name}...")

        image = cv2.imread(str(img_path))
        if image is None:
            print(f"  Warning: Could not read image")
            continue
        if image.shape[1::-1] != size:
            image = cv2.resize(image, size, interpolation=cv2.INTER_AREA)

        results = pipeline.analyze(image)
        result = results['result']

        if result.found:
            print(f"  Distance: {result.distance:.3f} m | Bearing: {result.bearing:+.3f} rad")
        elif results['extremes'] is not None:
            print(f"  Ring span {results['extremes']} rejected by geometry gates")
        else:
            print(f"  No ring ✗")

        if args.visualize and 'overlay' in results:
            label = f"d={result.distance:.2f} b={result.bearing:+.2f}" if result.found else "no target"
            vis = add_label_to_image(results['overlay'], label)
            out_path = output_dir / f"{img_path.stem}_overlay.png"
            cv2.imwrite(str(out_path), vis)
            print(f"  Saved: {out_path.name}")

    print(f"\nDone!")


if __name__ == "__main__":
    main()
