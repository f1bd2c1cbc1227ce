# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
FujiFilm RAF tag definitions

This module maps tag ids found in RAF files to names, expected binary
formats and value conversions. Tables are dispatch lists: each tag id
maps to one or more TagFormat variants checked in order, and the first
variant whose condition holds is used.

Copyright 2025 DNAi inc.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from rafkit.context import DecodeContext


@dataclass(frozen=True)
class TagFormat:
    """
    Definition of one tag variant.

    Attributes:
        name: Tag name
        format: Expected binary format, or None to use the raw payload
        count: Expected element count, or None for all that fit
        subdirectory: Name of the sub-format decoder for the payload
        condition: Predicate on the decode context selecting this variant
        raw_conv: Called with (value, context); returns (value, context).
                  A None value drops the tag.
        value_conv: Called with (value, context); returns the value
        print_conv: Called with the value; returns the display string
    """
    name: str
    format: Optional[str] = None
    count: Optional[int] = None
    subdirectory: Optional[str] = None
    condition: Optional[Callable[[DecodeContext], bool]] = None
    raw_conv: Optional[Callable[[Any, DecodeContext], Tuple[Any, DecodeContext]]] = None
    value_conv: Optional[Callable[[Any, DecodeContext], Any]] = None
    print_conv: Optional[Callable[[Any], str]] = None


def _half(value: int) -> Any:
    return value // 2 if value % 2 == 0 else value / 2


def _size_print(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return 'x'.join(str(v) for v in value)
    return str(value)


def _reverse(value: Any, context: DecodeContext) -> Any:
    return list(reversed(value))


def _s2pro_size(value: Any, context: DecodeContext) -> Any:
    # S2Pro stores width/height unswapped, with the packed layout applied
    return [value[0] * 2, _half(value[1])]


def _raw_image_size(value: Any, context: DecodeContext) -> Any:
    # stored as height, width
    width, height = reversed(value)
    if context.fuji_layout:
        width, height = _half(width), height * 2
    return [width, height]


def _set_layout(value: Any, context: DecodeContext) -> Tuple[Any, DecodeContext]:
    first = value[0] if isinstance(value, list) else value
    return value, context.with_layout(first)


def _first_width(value: Any, context: DecodeContext) -> Tuple[Any, DecodeContext]:
    if value < 10000:
        return value, context.with_width(value)
    return None, context


def _layout_width(value: Any, context: DecodeContext) -> Any:
    return _half(value) if context.fuji_layout else value


def _layout_height(value: Any, context: DecodeContext) -> Any:
    return value * 2 if context.fuji_layout else value


def _no_fuji_width(context: DecodeContext) -> bool:
    return not context.fuji_width


FACE_REC_INFO = 'FaceRecInfo'
RAF_DATA = 'RAFData'

# Tags of the proprietary RAF directory (header slots 0x5c and 0x78)
RAF_TAGS: Dict[int, List[TagFormat]] = {
    0x100: [
        TagFormat('RawImageFullSize', 'int16u', 2, value_conv=_reverse, print_conv=_size_print),
    ],
    0x121: [
        TagFormat('RawImageSize', 'int16u', 2,
                  condition=lambda context: context.model == 'FinePixS2Pro',
                  value_conv=_s2pro_size, print_conv=_size_print),
        TagFormat('RawImageSize', 'int16u', 2, value_conv=_raw_image_size, print_conv=_size_print),
    ],
    0x130: [
        TagFormat('FujiLayout', 'int8u', raw_conv=_set_layout),
    ],
    0x2ff0: [
        TagFormat('WB_GRGBLevels', 'int16u', 4),
    ],
    0x4282: [
        TagFormat('FaceRecInfo', subdirectory=FACE_REC_INFO),
    ],
    0xc000: [
        TagFormat('RAFData', subdirectory=RAF_DATA),
    ],
}

# Fields of the RAFData block, keyed by byte offset. Widths and heights
# are stored redundantly and which field holds what depends on firmware.
RAF_DATA_TAGS: Dict[int, List[TagFormat]] = {
    0: [
        TagFormat('RawImageWidth', 'int32u', 1, raw_conv=_first_width, value_conv=_layout_width),
    ],
    4: [
        TagFormat('RawImageWidth', 'int32u', 1, condition=_no_fuji_width, value_conv=_layout_width),
        TagFormat('RawImageHeight', 'int32u', 1, value_conv=_layout_height),
    ],
    8: [
        TagFormat('RawImageHeight', 'int32u', 1, condition=_no_fuji_width, value_conv=_layout_height),
    ],
}

# TIFF-format FujiIFD tags (header slots 0x64 and 0x80)
FUJI_IFD_SUBIFD = 0xf000

FUJI_IFD_TAGS: Dict[int, str] = {
    0xf000: 'FujiIFD',
    0xf001: 'RawImageFullWidth',
    0xf002: 'RawImageFullHeight',
    0xf003: 'BitsPerSample',
    0xf007: 'StripOffsets',
    0xf008: 'StripByteCounts',
    0xf00c: 'WB_GRBLevelsStandard',
    0xf00d: 'WB_GRBLevelsDaylight',
    0xf00e: 'WB_GRBLevels',
}

# FujiFilm maker note tags found in the EXIF of the embedded JPEG
MAKERNOTE_TAGS: Dict[int, str] = {
    0x0000: 'Version',
    0x0010: 'InternalSerialNumber',
    0x1000: 'Quality',
    0x1001: 'Sharpness',
    0x1002: 'WhiteBalance',
    0x1003: 'Saturation',
    0x1004: 'Contrast',
    0x1005: 'ColorTemperature',
    0x100a: 'WhiteBalanceFineTune',
    0x100b: 'NoiseReduction',
    0x100e: 'HighISONoiseReduction',
    0x1010: 'FujiFlashMode',
    0x1011: 'FlashExposureComp',
    0x1020: 'Macro',
    0x1021: 'FocusMode',
    0x1022: 'AFPointSet',
    0x1023: 'FocusPixel',
    0x1030: 'SlowSync',
    0x1031: 'PictureMode',
    0x1032: 'ExposureCount',
    0x1033: 'EXRAuto',
    0x1034: 'EXRMode',
    0x1040: 'ShadowTone',
    0x1041: 'HighlightTone',
    0x1100: 'AutoBracketing',
    0x1101: 'SequenceNumber',
    0x1210: 'ColorMode',
    0x1300: 'BlurWarning',
    0x1301: 'FocusWarning',
    0x1302: 'ExposureWarning',
    0x1400: 'DynamicRange',
    0x1401: 'FilmMode',
    0x1402: 'DynamicRangeSetting',
    0x1403: 'DevelopmentDynamicRange',
    0x1404: 'MinFocalLength',
    0x1405: 'MaxFocalLength',
    0x1406: 'MaxApertureAtMinFocal',
    0x1407: 'MaxApertureAtMaxFocal',
    0x140b: 'AutoDynamicRange',
    0x1422: 'ImageStabilization',
    0x4100: 'FacesDetected',
    0x4103: 'FacePositions',
    0x4282: 'FaceRecInfo',
    0x8000: 'FileSource',
    0x8002: 'OrderNumber',
    0x8003: 'FrameNumber',
    0xb211: 'Parallax',
}

MAKERNOTE_FACE_REC_INFO = 0x4282

# Standard EXIF tags reported from the embedded JPEG
EXIF_TAG_NAMES: Dict[int, str] = {
    0x010e: 'ImageDescription',
    0x010f: 'Make',
    0x0110: 'Model',
    0x0112: 'Orientation',
    0x011a: 'XResolution',
    0x011b: 'YResolution',
    0x0128: 'ResolutionUnit',
    0x0131: 'Software',
    0x0132: 'ModifyDate',
    0x013b: 'Artist',
    0x0213: 'YCbCrPositioning',
    0x8298: 'Copyright',
    0x829a: 'ExposureTime',
    0x829d: 'FNumber',
    0x8822: 'ExposureProgram',
    0x8827: 'ISO',
    0x9000: 'ExifVersion',
    0x9003: 'DateTimeOriginal',
    0x9004: 'CreateDate',
    0x9201: 'ShutterSpeedValue',
    0x9202: 'ApertureValue',
    0x9204: 'ExposureCompensation',
    0x9207: 'MeteringMode',
    0x9209: 'Flash',
    0x920a: 'FocalLength',
    0xa002: 'ExifImageWidth',
    0xa003: 'ExifImageHeight',
}

EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825
MAKERNOTE_TAG = 0x927c

# RAF versions known to round-trip through the writer
TESTED_RAF_VERSIONS: Dict[str, str] = {
    '0100': 'E550, E900, F770, S5600, S6000fd, S6500fd, HS10/HS11, HS30, S200EXR, X100, XF1, X-Pro1, X-S1 Ver1.00',
    '0101': 'X-E1',
    '0102': 'S100FS, X10 Ver1.02',
    '0103': 'IS Pro Ver1.03',
    '0104': 'S5Pro Ver1.04',
    '0106': 'S5Pro Ver1.06',
    '0111': 'S5Pro Ver1.11',
    '0114': 'S9600 Ver1.00',
    '0159': 'S2Pro Ver1.00',
    '0212': 'S3Pro Ver2.12',
    '0216': 'S3Pro Ver2.16',
    '0218': 'S3Pro Ver2.18',
    '0264': 'F700  Ver2.00',
    '0266': 'S9500 Ver1.01',
    '0269': 'S9500 Ver1.02',
    '0271': 'S3Pro Ver2.71',
    '0712': 'S5000 Ver3.00',
    '0716': 'S5000 Ver3.00',
}


class TagFormatCatalog:
    """
    Lookup of tag definitions for one directory family.

    Example:
        >>> catalog = TagFormatCatalog(RAF_TAGS)
        >>> catalog.lookup(0x100, DecodeContext()).name
        'RawImageFullSize'
    """

    def __init__(self, table: Dict[int, List[TagFormat]]):
        self.table = table

    def lookup(self, tag_id: int, context: Optional[DecodeContext] = None) -> Optional[TagFormat]:
        """
        Return the first variant of tag_id whose condition holds.

        Args:
            tag_id: Tag id (or byte offset for binary blocks)
            context: Current decode context

        Returns:
            Matching TagFormat, or None if the tag is unknown
        """
        context = context or DecodeContext()
        for variant in self.table.get(tag_id, []):
            if variant.condition is None or variant.condition(context):
                return variant
        return None

    def __contains__(self, tag_id: int) -> bool:
        return tag_id in self.table


RAF_CATALOG = TagFormatCatalog(RAF_TAGS)
RAF_DATA_CATALOG = TagFormatCatalog(RAF_DATA_TAGS)
