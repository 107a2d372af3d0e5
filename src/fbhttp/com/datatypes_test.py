import unittest

from hamcrest import assert_that, is_, calling, raises, close_to

from fbhttp.com.datatypes import Bool, ConversionError, DInt, LReal, Real, SInt, String, UInt, ULInt, USInt, \
    ValueSizeError, WString, create, strip_type_prefix


class IntegerTest(unittest.TestCase):

    def test_parse_decimal(self):
        assert_that(SInt().parse('-128'), is_(-128))
        assert_that(DInt().parse(' 1_000_000 '), is_(1000000))
        assert_that(SInt().parse('SINT#5'), is_(5))

    def test_parse_based(self):
        assert_that(UInt().parse('16#FF_FF'), is_(0xFFFF))
        assert_that(USInt().parse('2#1010'), is_(10))
        assert_that(SInt().parse('-8#17'), is_(-15))

    def test_out_of_range(self):
        assert_that(calling(SInt().parse).with_args('128'), raises(ConversionError))
        assert_that(calling(USInt().parse).with_args('-1'), raises(ConversionError))
        assert_that(ULInt().parse(str(2 ** 64 - 1)), is_(2 ** 64 - 1))

    def test_not_an_integer(self):
        for text in ('', 'abc', '1.5', '16#', 'INT#3'):
            assert_that(calling(SInt().parse).with_args(text), raises(ConversionError))

    def test_from_string_keeps_value_on_error(self):
        sut = SInt(3)
        assert_that(sut.from_string('x'), is_(False))
        assert_that(sut.value, is_(3))
        assert_that(sut.from_string('4'), is_(True))
        assert_that(sut.value, is_(4))
        assert_that(sut.from_text('x'), is_(False))
        assert_that(sut.value, is_(4))
        assert_that(sut.from_text('SINT#5'), is_(True))
        assert_that(sut.value, is_(5))

    def test_to_string(self):
        assert_that(SInt(-128).to_string(), is_('-128'))
        assert_that(SInt().to_string_buffer_size(), is_(4))
        assert_that(calling(SInt(-1000).to_string), raises(ValueSizeError))
        assert_that(calling(DInt(12345).to_string).with_args(4), raises(ValueSizeError))


class BoolTest(unittest.TestCase):

    def test_bool(self):
        assert_that(Bool().parse('true'), is_(True))
        assert_that(Bool().parse('BOOL#0'), is_(False))
        assert_that(calling(Bool().parse).with_args('yes'), raises(ConversionError))
        assert_that(Bool(True).to_string(), is_('TRUE'))


class RealTest(unittest.TestCase):

    def test_real_is_single_precision(self):
        assert_that(Real().parse('0.1'), is_(close_to(0.1, 1e-7)))
        assert_that(Real().parse('0.1') == 0.1, is_(False))
        assert_that(LReal().parse('0.1'), is_(0.1))

    def test_real_bounds(self):
        assert_that(calling(Real().parse).with_args('1e39'), raises(ConversionError))
        assert_that(calling(LReal().parse).with_args('nan'), raises(ConversionError))
        assert_that(calling(LReal().parse).with_args('x'), raises(ConversionError))

    def test_to_string(self):
        assert_that(LReal(2.5).to_string(), is_('2.5'))
        assert_that(Real(1e-30).to_string(), is_('1e-30'))


class CharStringTest(unittest.TestCase):

    def test_raw_text(self):
        assert_that(String().parse('hello world'), is_('hello world'))
        assert_that(String().parse("'"), is_("'"))

    def test_quoted_literal(self):
        assert_that(String().parse("'it$'s$N'"), is_("it's\n"))
        assert_that(WString().parse('"$"x$""'), is_('"x"'))
        assert_that(String().parse("STRING#'a'"), is_('a'))

    def test_message_text_is_verbatim(self):
        assert_that(String().parse_text("'auto'"), is_("'auto'"))
        assert_that(WString().parse_text('WSTRING#"x"'), is_('WSTRING#"x"'))
        assert_that(String().parse_text(""), is_(""))
        sut = String("old")
        assert_that(sut.from_text("''"), is_(True))
        assert_that(sut.value, is_("''"))

    def test_bad_escape(self):
        assert_that(calling(String().parse).with_args("'$q'"), raises(ConversionError))
        assert_that(calling(String().parse).with_args("'a$'"), raises(ConversionError))

    def test_utf8(self):
        sut = WString('grüße')
        assert_that(sut.to_string_buffer_size(), is_(7))
        assert_that(sut.to_utf8(), is_('grüße'))
        assert_that(calling(sut.to_utf8).with_args(6), raises(ValueSizeError))


class CreateTest(unittest.TestCase):

    def test_create(self):
        assert_that(create('SINT', 5), is_(SInt(5)))
        assert_that(create('STRING'), is_(String('')))
        assert_that(calling(create).with_args('TIME'), raises(KeyError))

    def test_strip_type_prefix(self):
        assert_that(strip_type_prefix('INT', 'INT#7'), is_('7'))
        assert_that(strip_type_prefix('INT', 'DINT#7'), is_('DINT#7'))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
