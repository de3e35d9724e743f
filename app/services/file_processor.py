"""
Content extraction for uploaded study material.
Supports: PDF, Word, PowerPoint (slide XML), images (OCR), audio/video
(transcoding + transcription) and plain text.
"""

import io
import re
import subprocess
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from xml.etree import ElementTree

import PyPDF2
import pytesseract
import requests
from docx import Document as WordDocument
from PIL import Image

from app.core.logging_config import get_logger
from app.models.note import AUDIO_FILE_TYPES, FileType

TRANSCRIPTION_PLACEHOLDER = "Audio transcription placeholder"

IMAGE_TYPES = {FileType.JPG, FileType.JPEG, FileType.PNG}
SLIDE_ENTRY = re.compile(r"^ppt/slides/slide(\d+)\.xml$")

# Errors that make a single slide unreadable without spoiling the rest of the deck
UNREADABLE_SLIDE_ERRORS = (
    ElementTree.ParseError,
    zipfile.BadZipFile,
    zlib.error,
    EOFError,
    KeyError,
    RuntimeError,
    NotImplementedError,
)

logger = get_logger(__name__)


class FileProcessingError(Exception):
    """Base exception for file processing errors."""
    pass


class UnsupportedFileType(FileProcessingError):
    """The declared file type has no extractor."""

    def __init__(self, file_type: str):
        super().__init__(f"Unsupported file type: {file_type or '(none)'}")
        self.file_type = file_type


class ExtractionError(FileProcessingError):
    """A supported file could not be read (corrupt file, OCR or transcoding failure)."""
    pass


@dataclass(frozen=True)
class ExtractorConfig:
    upload_dir: Path
    ffmpeg_binary: str = "ffmpeg"
    transcription_endpoint: str = ""
    transcription_api_key: str = ""

    @classmethod
    def from_settings(cls, settings) -> "ExtractorConfig":
        return cls(
            upload_dir=Path(settings.upload_dir),
            ffmpeg_binary=settings.ffmpeg_binary,
            transcription_endpoint=settings.transcription_endpoint,
            transcription_api_key=settings.transcription_api_key,
        )


def declared_file_type(filename: str) -> str:
    """File type as declared by the extension: ``Lecture.PPTX`` -> ``pptx``."""
    return Path(filename or "").suffix.lstrip(".").lower()


def is_supported(file_type: str) -> bool:
    return file_type in {t.value for t in FileType}


def transcoded_path(file_path: str | Path, file_type: str) -> Path | None:
    """Path of the wav written next to an audio/video upload, if one is produced."""
    if file_type in (FileType.MP3.value, FileType.MP4.value):
        return Path(file_path).with_suffix(".wav")
    return None


# ── Per-format extractors ─────────────────────────────────────


def extract_pdf_bytes(file_content: bytes) -> str:
    """Extract text from PDF bytes."""
    try:
        pdf_reader = PyPDF2.PdfReader(io.BytesIO(file_content))
        text_parts = []
        logger.debug(f"Processing PDF with {len(pdf_reader.pages)} pages")
        for page in pdf_reader.pages:
            text = page.extract_text()
            if text:
                text_parts.append(text)
        return "\n\n".join(text_parts)
    except Exception as e:
        logger.error(f"PDF extraction failed: {e}")
        raise ExtractionError(f"Failed to extract text from PDF: {e}")


def extract_text_from_docx(file_path: Path) -> str:
    """Extract raw text from a Word document: paragraphs, then table rows."""
    try:
        doc = WordDocument(str(file_path))
    except Exception as e:
        logger.error(f"DOCX extraction failed | file={file_path.name} | error={e}")
        raise ExtractionError(f"Failed to extract text from Word document: {e}")

    text_parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(" | ".join(row_text))
    return "\n\n".join(text_parts)


def _slide_text(xml_bytes: bytes) -> str:
    """Flatten every text leaf of a slide part, in document order."""
    root = ElementTree.fromstring(xml_bytes)
    return " ".join(chunk.strip() for chunk in root.itertext() if chunk.strip())


def extract_text_from_slides(file_path: Path) -> str:
    """Extract text from a presentation by reading its slide XML parts.

    A slide that fails to parse is skipped. An archive that cannot be opened
    at all yields an empty string.
    """
    try:
        archive = zipfile.ZipFile(file_path)
    except (zipfile.BadZipFile, OSError) as e:
        logger.error(f"Cannot open presentation archive | file={file_path.name} | error={e}")
        return ""

    slides = []
    with archive:
        entries = []
        for name in archive.namelist():
            match = SLIDE_ENTRY.match(name)
            if match:
                entries.append((int(match.group(1)), name))
        logger.debug(f"Presentation {file_path.name} has {len(entries)} slides")

        for _, name in sorted(entries):
            try:
                slides.append(_slide_text(archive.read(name)))
            except UNREADABLE_SLIDE_ERRORS as e:
                logger.warning(f"Skipping unreadable slide | file={file_path.name} | slide={name} | error={e}")

    return "\n\n".join(slides)


def extract_text_from_image(file_path: Path) -> str:
    """Run OCR over a raster image. Returns "" when no text is found."""
    try:
        image = Image.open(file_path)
        # Tesseract wants RGB or grayscale
        if image.mode in ("RGBA", "LA", "P"):
            image = image.convert("RGB")
        text = pytesseract.image_to_string(image)
    except Exception as e:
        logger.error(f"OCR failed | file={file_path.name} | error={e}")
        raise ExtractionError(f"Failed to extract text from image: {e}")
    return text.strip()


def extract_text_from_text_file(file_path: Path) -> str:
    try:
        return file_path.read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        raise ExtractionError(f"Failed to read text file: {e}")


# ── Extractor ─────────────────────────────────────────────────


class ContentExtractor:
    """Produces plain text from a stored upload, dispatched on the declared file type."""

    def __init__(self, config: ExtractorConfig):
        self.config = config

    def extract(self, file_path: str | Path, declared_type: str) -> str:
        """
        Extract text from a stored upload.

        Args:
            file_path: Path of the stored upload
            declared_type: Extension-derived type (``pdf``, ``pptx``, ...)

        Returns:
            Extracted text, possibly empty

        Raises:
            UnsupportedFileType: declared_type has no extractor
            ExtractionError: the file could not be read
        """
        file_path = Path(file_path)
        declared_type = (declared_type or "").lower()
        if not is_supported(declared_type):
            logger.warning(f"Unsupported file type: {declared_type} for file {file_path.name}")
            raise UnsupportedFileType(declared_type)

        file_type = FileType(declared_type)
        logger.info(f"Extracting text | file={file_path.name} | type={file_type.value}")

        if file_type == FileType.PDF:
            try:
                data = file_path.read_bytes()
            except OSError as e:
                raise ExtractionError(f"Failed to read PDF: {e}")
            text = extract_pdf_bytes(data)
        elif file_type == FileType.DOCX:
            text = extract_text_from_docx(file_path)
        elif file_type in (FileType.PPT, FileType.PPTX):
            text = extract_text_from_slides(file_path)
        elif file_type in IMAGE_TYPES:
            text = extract_text_from_image(file_path)
        elif file_type in AUDIO_FILE_TYPES:
            text = self.transcribe_audio(file_path)
        else:
            text = extract_text_from_text_file(file_path)

        logger.debug(f"Extracted {len(text)} chars from {file_path.name}")
        return text

    def to_wav(self, file_path: Path) -> Path:
        """Re-encode audio/video to a wav next to the source. Wav input is returned as-is."""
        if file_path.suffix.lower() == ".wav":
            return file_path

        wav_path = file_path.with_suffix(".wav")
        cmd = [
            self.config.ffmpeg_binary, "-y", "-hide_banner", "-loglevel", "error",
            "-i", str(file_path),
            "-vn", "-acodec", "pcm_s16le", "-ar", "16000", "-ac", "1",
            str(wav_path),
        ]
        logger.info(f"Transcoding to wav: {' '.join(cmd)}")
        try:
            subprocess.run(cmd, check=True, capture_output=True)
        except FileNotFoundError:
            raise ExtractionError(f"ffmpeg not found at '{self.config.ffmpeg_binary}'")
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            logger.error(f"Transcode failed | file={file_path.name} | error={stderr}")
            raise ExtractionError(f"Failed to transcode audio: {stderr or e}")
        return wav_path

    def transcribe_audio(self, file_path: Path) -> str:
        """Normalize to wav, then hand off to the transcription service."""
        wav_path = self.to_wav(file_path)

        if not self.config.transcription_endpoint:
            logger.info("Transcription service not configured, using placeholder")
            return TRANSCRIPTION_PLACEHOLDER

        headers = {}
        if self.config.transcription_api_key:
            headers["Authorization"] = f"Bearer {self.config.transcription_api_key}"
        try:
            with open(wav_path, "rb") as audio:
                response = requests.post(
                    self.config.transcription_endpoint,
                    files={"file": (wav_path.name, audio, "audio/wav")},
                    headers=headers,
                )
            response.raise_for_status()
            return response.json().get("text") or ""
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.error(f"Transcription failed | file={wav_path.name} | error={e}")
            raise ExtractionError(f"Failed to transcribe audio: {e}")
