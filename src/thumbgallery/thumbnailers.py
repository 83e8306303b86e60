"""Default image-resize and video-frame collaborators."""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
from PIL import Image, ImageOps, UnidentifiedImageError

from thumbgallery.errors import MediaError

logger = logging.getLogger(__name__)

FRAME_POSITION = 0.5


def resize_image(source: str | Path, dest: str | Path, width: int, height: int) -> Path:
    """Write a thumbnail of ``source`` bounded by ``width`` x ``height``.

    Parameters
    ----------
    source : str | Path
        Path to the original image.
    dest : str | Path
        Path the thumbnail is written to; the format follows its extension.
    width, height : int
        Bounding box. Aspect ratio is preserved and images smaller than the
        box are never enlarged.

    Returns
    -------
    Path
        The written thumbnail path.
    """
    dest = Path(dest)
    try:
        with Image.open(source) as image:
            image = ImageOps.exif_transpose(image)
            image.thumbnail((width, height), Image.Resampling.LANCZOS)
            if dest.suffix.lower() in {".jpg", ".jpeg"} and image.mode not in {
                "RGB",
                "L",
            }:
                image = image.convert("RGB")
            image.save(dest)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise MediaError(f"Cannot process image {source}: {exc}") from exc

    logger.debug("Wrote image thumbnail %s", dest)
    return dest


def extract_frame(
    source: str | Path, dest_dir: str | Path, dest_filename: str, width_hint: int
) -> Path:
    """Save the frame at 50% of the video's duration as a JPEG.

    Parameters
    ----------
    source : str | Path
        Path to the video file.
    dest_dir : str | Path
        Directory to save the frame in.
    dest_filename : str
        Filename of the saved frame.
    width_hint : int
        Target width; height follows the source aspect ratio.

    Returns
    -------
    Path
        The written frame path.
    """
    output_path = Path(dest_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    frame_path = output_path / dest_filename

    cap = cv2.VideoCapture(str(source))
    try:
        if not cap.isOpened():
            raise MediaError(f"Could not open video file: {source}")

        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        if frame_count > 0:
            cap.set(cv2.CAP_PROP_POS_FRAMES, int(frame_count * FRAME_POSITION))

        ret, frame = cap.read()
        if not ret or frame is None:
            raise MediaError(f"Cannot process video: no frame decoded from {source}")
    finally:
        cap.release()

    frame_height, frame_width = frame.shape[:2]
    if width_hint and frame_width > 0:
        target_height = max(1, round(frame_height * width_hint / frame_width))
        frame = cv2.resize(
            frame, (width_hint, target_height), interpolation=cv2.INTER_AREA
        )

    if not cv2.imwrite(str(frame_path), frame):
        raise MediaError(f"Cannot write video thumbnail {frame_path}")

    logger.debug("Wrote video thumbnail %s", frame_path)
    return frame_path
