"""
Content Sniffer

Classifies a byte buffer as image, audio or neither by its magic bytes.
Client-supplied content types and filenames are never consulted.

Always run on the fully assembled buffer: some signatures sit at offset 4
or 8, so a partial first chunk can be misclassified.
"""

from typing import Callable, List, Optional, Tuple

from .models import MediaCategory, MediaKind

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_SOI = b"\xff\xd8\xff"
JXL_CONTAINER = b"\x00\x00\x00\x0cJXL \r\n\x87\n"

# ISO base media "ftyp" brands
HEIF_BRANDS = (b"heic", b"heix", b"hevc", b"hevx", b"mif1", b"msf1")
AVIF_BRANDS = (b"avif", b"avis")
M4A_BRANDS = (b"M4A ", b"M4B ", b"M4P ")


def _ftyp_brand(data: bytes) -> Optional[bytes]:
    if len(data) >= 12 and data[4:8] == b"ftyp":
        return data[8:12]
    return None


def _is_png(data: bytes) -> bool:
    return data.startswith(PNG_MAGIC)


def _is_jpeg(data: bytes) -> bool:
    return data.startswith(JPEG_SOI)


def _is_gif(data: bytes) -> bool:
    return data.startswith(b"GIF87a") or data.startswith(b"GIF89a")


def _is_webp(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP"


def _is_bmp(data: bytes) -> bool:
    return data.startswith(b"BM")


def _is_tiff(data: bytes) -> bool:
    return data.startswith(b"II*\x00") or data.startswith(b"MM\x00*")


def _is_ico(data: bytes) -> bool:
    return data.startswith(b"\x00\x00\x01\x00")


def _is_psd(data: bytes) -> bool:
    return data.startswith(b"8BPS")


def _is_heif(data: bytes) -> bool:
    return _ftyp_brand(data) in HEIF_BRANDS


def _is_avif(data: bytes) -> bool:
    return _ftyp_brand(data) in AVIF_BRANDS


def _is_jxl(data: bytes) -> bool:
    return data.startswith(b"\xff\x0a") or data.startswith(JXL_CONTAINER)


def _is_midi(data: bytes) -> bool:
    return data.startswith(b"MThd")


def _is_mp3(data: bytes) -> bool:
    if data.startswith(b"ID3"):
        return True
    # MPEG-1 layer III frame sync
    return len(data) >= 2 and data[0] == 0xFF and data[1] in (0xFB, 0xF3, 0xF2)


def _is_m4a(data: bytes) -> bool:
    return _ftyp_brand(data) in M4A_BRANDS


def _is_ogg(data: bytes) -> bool:
    return data.startswith(b"OggS")


def _is_flac(data: bytes) -> bool:
    return data.startswith(b"fLaC")


def _is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def _is_amr(data: bytes) -> bool:
    return data.startswith(b"#!AMR\n")


def _is_aac(data: bytes) -> bool:
    # ADTS header
    return len(data) >= 2 and data[0] == 0xFF and data[1] in (0xF1, 0xF9)


def _is_aiff(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"FORM" and data[8:12] == b"AIFF"


def _is_ape(data: bytes) -> bool:
    return data.startswith(b"MAC ")


def _is_dsf(data: bytes) -> bool:
    return data.startswith(b"DSD ")


Matcher = Callable[[bytes], bool]

IMAGE_SIGNATURES: List[Tuple[Matcher, str, str]] = [
    (_is_png, "png", "image/png"),
    (_is_jpeg, "jpg", "image/jpeg"),
    (_is_gif, "gif", "image/gif"),
    (_is_webp, "webp", "image/webp"),
    (_is_tiff, "tif", "image/tiff"),
    (_is_bmp, "bmp", "image/bmp"),
    (_is_ico, "ico", "image/vnd.microsoft.icon"),
    (_is_psd, "psd", "image/vnd.adobe.photoshop"),
    (_is_heif, "heif", "image/heif"),
    (_is_avif, "avif", "image/avif"),
    (_is_jxl, "jxl", "image/jxl"),
]

AUDIO_SIGNATURES: List[Tuple[Matcher, str, str]] = [
    (_is_midi, "mid", "audio/midi"),
    (_is_mp3, "mp3", "audio/mpeg"),
    (_is_m4a, "m4a", "audio/m4a"),
    (_is_ogg, "ogg", "audio/ogg"),
    (_is_flac, "flac", "audio/x-flac"),
    (_is_wav, "wav", "audio/x-wav"),
    (_is_amr, "amr", "audio/amr"),
    (_is_aac, "aac", "audio/aac"),
    (_is_aiff, "aiff", "audio/x-aiff"),
    (_is_ape, "ape", "audio/x-ape"),
    (_is_dsf, "dsf", "audio/x-dsf"),
]

_EXTENSION_TO_MIME = {
    ext: mime for _, ext, mime in IMAGE_SIGNATURES + AUDIO_SIGNATURES
}


def classify(data: bytes) -> Optional[MediaKind]:
    """
    Classify a buffer by its signature.

    Returns:
        MediaKind for a recognised image or audio format, None otherwise.
    """
    for category, table in (
        (MediaCategory.IMAGE, IMAGE_SIGNATURES),
        (MediaCategory.AUDIO, AUDIO_SIGNATURES),
    ):
        for matches, extension, mime_type in table:
            if matches(data):
                return MediaKind(category=category, extension=extension, mime_type=mime_type)
    return None


def is_image(data: bytes) -> bool:
    kind = classify(data)
    return kind is not None and kind.category is MediaCategory.IMAGE


def is_audio(data: bytes) -> bool:
    kind = classify(data)
    return kind is not None and kind.category is MediaCategory.AUDIO


def mime_for_extension(extension: str) -> Optional[str]:
    return _EXTENSION_TO_MIME.get(extension.lower().lstrip("."))
