"""
Typed values held by the data pins of a function block.

Each value converts to and from text in the IEC 61131-3 literal forms. Text conversion is bounded:
a value reports the largest text it can produce (to_string_buffer_size) and refuses to render into
less space than its text needs, rather than truncating it.
"""
import math
import re
import struct


class ConversionError(ValueError):
    """ Raised when text cannot be converted into a value of the given type. """


class ValueSizeError(ConversionError):
    """ Raised when the text of a value does not fit in the space offered for it. """


class DataType:
    """ The data type identifiers """
    bool = 'BOOL'
    sint = 'SINT'
    int = 'INT'
    dint = 'DINT'
    lint = 'LINT'
    usint = 'USINT'
    uint = 'UINT'
    udint = 'UDINT'
    ulint = 'ULINT'
    real = 'REAL'
    lreal = 'LREAL'
    string = 'STRING'
    wstring = 'WSTRING'


_typed_literal = re.compile(r'^([A-Z_]+)#(.*)$', re.DOTALL)
_based_literal = re.compile(r'^([+-]?)(2|8|16)#([0-9A-Fa-f_]+)$')
_decimal_literal = re.compile(r'^[+-]?[0-9][0-9_]*$')


def strip_type_prefix(type_id, text):
    """
    Removes a matching type prefix from an IEC literal.

    >>> strip_type_prefix('SINT', 'SINT#-5')
    '-5'
    >>> strip_type_prefix('SINT', '16#7F')
    '16#7F'
    """
    match = _typed_literal.match(text)
    if match and match.group(1) == type_id:
        return match.group(2)
    return text


class Value:
    """ A typed value. Subclasses define type_id and the text conversions. """

    type_id = None
    default = None

    def __init__(self, value=None):
        self.value = self.default if value is None else value

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.value)

    def __eq__(self, other):
        return type(other) is type(self) and other.value == self.value

    def __ne__(self, other):
        return not self.__eq__(other)

    def to_string_buffer_size(self):
        """ the largest number of characters to_string() may produce for this value. """
        raise NotImplementedError

    def _format(self):
        raise NotImplementedError

    def to_string(self, buffer_size=None):
        """
        Renders the value as text.
        :param buffer_size: the space available for the text. Defaults to to_string_buffer_size()
        :raises ValueSizeError: when the text needs more than buffer_size characters
        """
        text = self._format()
        limit = self.to_string_buffer_size() if buffer_size is None else buffer_size
        if len(text) > limit:
            raise ValueSizeError("%s text needs %d characters but only %d are available" %
                                 (self.type_id, len(text), limit))
        return text

    def parse(self, text):
        """
        Converts text into a value of this type without changing this value.
        :raises ConversionError: when the text does not denote a value of this type
        """
        raise NotImplementedError

    def from_string(self, text):
        """ Sets the value from text. Returns False, leaving the value unchanged, when the text is invalid. """
        try:
            self.value = self.parse(text)
        except ConversionError:
            return False
        return True

    def parse_text(self, text):
        """
        Converts the text of a message payload, such as an HTTP body or form field, into a value of
        this type. Unlike parse(), character strings take the text verbatim.
        :raises ConversionError: when the text does not denote a value of this type
        """
        return self.parse(text)

    def from_text(self, text):
        """ Sets the value from a message payload. Returns False, leaving the value unchanged, when it is invalid. """
        try:
            self.value = self.parse_text(text)
        except ConversionError:
            return False
        return True


class Bool(Value):
    type_id = DataType.bool
    default = False

    def to_string_buffer_size(self):
        return 5

    def _format(self):
        return 'TRUE' if self.value else 'FALSE'

    def parse(self, text):
        literal = strip_type_prefix(self.type_id, text.strip()).upper()
        if literal in ('TRUE', '1'):
            return True
        if literal in ('FALSE', '0'):
            return False
        raise ConversionError("'%s' is not a BOOL" % text)


class Integer(Value):
    """ Integer types, bounded by min_value and max_value. """
    default = 0
    min_value = 0
    max_value = 0

    def to_string_buffer_size(self):
        return max(len(str(self.min_value)), len(str(self.max_value)))

    def _format(self):
        return str(self.value)

    def parse(self, text):
        literal = strip_type_prefix(self.type_id, text.strip())
        based = _based_literal.match(literal)
        try:
            if based:
                sign, base, digits = based.groups()
                result = int(digits.replace('_', ''), int(base))
                if sign == '-':
                    result = -result
            elif _decimal_literal.match(literal):
                result = int(literal.replace('_', ''))
            else:
                raise ConversionError("'%s' is not a %s" % (text, self.type_id))
        except ValueError as e:
            raise ConversionError("'%s' is not a %s" % (text, self.type_id)) from e
        if not self.min_value <= result <= self.max_value:
            raise ConversionError("%d is out of range for %s" % (result, self.type_id))
        return result


class SInt(Integer):
    type_id = DataType.sint
    min_value, max_value = -2 ** 7, 2 ** 7 - 1


class Int(Integer):
    type_id = DataType.int
    min_value, max_value = -2 ** 15, 2 ** 15 - 1


class DInt(Integer):
    type_id = DataType.dint
    min_value, max_value = -2 ** 31, 2 ** 31 - 1


class LInt(Integer):
    type_id = DataType.lint
    min_value, max_value = -2 ** 63, 2 ** 63 - 1


class USInt(Integer):
    type_id = DataType.usint
    max_value = 2 ** 8 - 1


class UInt(Integer):
    type_id = DataType.uint
    max_value = 2 ** 16 - 1


class UDInt(Integer):
    type_id = DataType.udint
    max_value = 2 ** 32 - 1


class ULInt(Integer):
    type_id = DataType.ulint
    max_value = 2 ** 64 - 1


class Real(Value):
    """ single precision floating point; values are rounded to 32 bits when parsed. """
    type_id = DataType.real
    default = 0.0
    digits = 9

    def to_string_buffer_size(self):
        # sign, digits, point and a three digit exponent
        return self.digits + 7

    def _format(self):
        return '%.*g' % (self.digits, self.value)

    def _round(self, value):
        try:
            return struct.unpack('f', struct.pack('f', value))[0]
        except OverflowError as e:
            raise ConversionError("%r is out of range for %s" % (value, self.type_id)) from e

    def parse(self, text):
        literal = strip_type_prefix(self.type_id, text.strip()).replace('_', '')
        try:
            result = float(literal)
        except ValueError as e:
            raise ConversionError("'%s' is not a %s" % (text, self.type_id)) from e
        if math.isnan(result) or math.isinf(result):
            raise ConversionError("'%s' is not a finite %s" % (text, self.type_id))
        return self._round(result)


class LReal(Real):
    type_id = DataType.lreal
    digits = 17

    def _round(self, value):
        return value


class CharString(Value):
    """
    Character strings. The text form is the raw content; parse also accepts a quoted literal with
    '$' escapes. Message payloads are taken as they are.
    """
    default = ''
    quote = "'"
    _escapes = {'$': '$', 'L': '\n', 'N': '\n', 'P': '\f', 'R': '\r', 'T': '\t', "'": "'", '"': '"'}

    def to_string_buffer_size(self):
        return len(self.value.encode('utf-8'))

    def _format(self):
        return self.value

    def to_utf8(self, buffer_size=None):
        """
        Renders the value as UTF-8 text without a byte order mark.
        :raises ValueSizeError: when the encoded text needs more than buffer_size bytes
        """
        limit = self.to_string_buffer_size() if buffer_size is None else buffer_size
        encoded = self.value.encode('utf-8')
        if len(encoded) > limit:
            raise ValueSizeError("%s text needs %d bytes but only %d are available" %
                                 (self.type_id, len(encoded), limit))
        return encoded.decode('utf-8')

    def parse(self, text):
        literal = strip_type_prefix(self.type_id, text)
        q = self.quote
        if len(literal) >= 2 and literal[0] == q and literal[-1] == q:
            return self._unescape(literal[1:-1])
        return literal

    def parse_text(self, text):
        return text

    def _unescape(self, body):
        result = []
        chars = iter(body)
        for c in chars:
            if c != '$':
                result.append(c)
                continue
            code = next(chars, None)
            if code is None:
                raise ConversionError("dangling '$' in %s literal" % self.type_id)
            escaped = self._escapes.get(code.upper())
            if escaped is None:
                raise ConversionError("unknown escape '$%s' in %s literal" % (code, self.type_id))
            result.append(escaped)
        return ''.join(result)


class String(CharString):
    type_id = DataType.string


class WString(CharString):
    type_id = DataType.wstring
    quote = '"'


_types = {cls.type_id: cls for cls in
          (Bool, SInt, Int, DInt, LInt, USInt, UInt, UDInt, ULInt, Real, LReal, String, WString)}


def create(type_id, value=None) -> Value:
    """
    Creates a value of the named type.

    >>> create('SINT', 5)
    SInt(5)
    """
    cls = _types.get(type_id)
    if cls is None:
        raise KeyError("unknown data type %s" % type_id)
    return cls(value)
