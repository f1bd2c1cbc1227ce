# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
API options

Options are plain name/value pairs validated against available_options().

Copyright 2025 DNAi inc.
"""

from typing import Any, Dict, Optional


def available_options() -> Dict[str, Dict[str, Any]]:
    """
    Return a dictionary of available API options.

    Returns:
        Dictionary mapping option names to their metadata:
        {
            'OptionName': {
                'description': 'Description of the option',
                'type': 'bool|str|int',
                'default': default_value,
            },
            ...
        }
    """
    return {
        'NoWarning': {
            'description': 'Suppress advisory warnings in read and write results',
            'type': 'bool',
            'default': False,
        },
        'StrictPadding': {
            'description': 'Treat non-zero bytes in the JPEG padding as a fatal error',
            'type': 'bool',
            'default': False,
        },
        'IgnoreMinorErrors': {
            'description': 'Do not report RAF versions that have not been tested for writing',
            'type': 'bool',
            'default': False,
        },
        'BlockSize': {
            'description': 'Block size used to copy the data that follows the JPEG',
            'type': 'int',
            'default': 65536,
        },
        'ExtractPreview': {
            'description': 'Include the embedded JPEG bytes as RAF:PreviewImage',
            'type': 'bool',
            'default': False,
        },
    }


def validate_option(option_name: str, value: Any) -> Any:
    """
    Validate and coerce one option value.

    Raises:
        ValueError: If the option is unknown or the value has the wrong type
    """
    available = available_options()
    if option_name not in available:
        raise ValueError(f"Unknown option: {option_name}. Use available_options() to see valid options.")

    expected_type = available[option_name]['type']
    if expected_type == 'bool' and not isinstance(value, bool):
        if isinstance(value, str):
            value = value.lower() in ('true', '1', 'yes', 'on')
        else:
            value = bool(value)
    elif expected_type == 'int' and not isinstance(value, int):
        try:
            value = int(value)
        except (ValueError, TypeError):
            raise ValueError(f"Option {option_name} requires int value, got {type(value).__name__}")
    if option_name == 'BlockSize' and value <= 0:
        raise ValueError("Option BlockSize must be positive")
    return value


def resolve_options(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Return the default options updated with validated overrides.
    """
    options = {name: info['default'] for name, info in available_options().items()}
    for name, value in (overrides or {}).items():
        options[name] = validate_option(name, value)
    return options
