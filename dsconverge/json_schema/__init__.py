"""
JSON schemas (draft 4) of the declaration sections that dsconverge reads.
"""
import functools

from jsonschema import Draft4Validator, validate

validate = functools.partial(validate, cls=Draft4Validator)
