import os
import tempfile
import pytest

from mkinitbench.bash import BashScalar, BashArray, BashValue, escape, unescape, is_array_source
from mkinitbench.model import ShellError, MalformedValueError, BashEncodingError
from conftest import requires_bash


@pytest.mark.parametrize("text,expected", [
	("()", True),
	("(a b c)", True),
	("([0]=x)", True),
	("just text", False),
	("(not closed", False),
	("not opened)", False),
	("'()'", False),
	("", False),
])
def test_is_array_source(text, expected):
	assert is_array_source(text) is expected


@requires_bash
def test_escaping():
	escaped = escape(b"just some text")
	assert escaped == "'just some text'"
	assert unescape(escaped) == b"just some text"

	escaped = escape(b"binary\xff\xffdata")
	assert escaped == "$'binary\\377\\377data'"
	assert unescape(escaped) == b"binary\xff\xffdata"


@requires_bash
def test_non_escaped_text():
	assert unescape("word") == b"word"

	with pytest.raises(ShellError) as e:
		unescape("multiple words")
	assert "words: command not found" in str(e.value)


@requires_bash
@pytest.mark.parametrize("data", [
	b"",
	b"plain",
	b"with space",
	b"it's quoted",
	b'"double"',
	b"tab\there",
	b"trailing newline\n",
	b"\n\nleading newlines",
	b"binary\xff\xfe",
	b"$(echo not evaluated)",
	b"back\\slash",
	b"*glob?",
	b"(parens)",
	b"-e",
])
def test_raw_round_trip(data):
	scalar = BashScalar.from_raw(data)
	assert scalar.raw == data
	assert BashScalar.from_escaped(scalar.source).raw == data


@requires_bash
def test_null_bytes_are_dropped():
	scalar = BashScalar.from_raw(b"string 'with quotes' and\0 null byte")
	assert scalar.source == "'string '\\''with quotes'\\'' and null byte'"
	assert BashScalar.from_escaped(scalar.source) == b"string 'with quotes' and null byte"

	scalar = BashScalar.from_escaped("$'null character\\0 is ignored'")
	assert scalar.raw == b"null character"


@requires_bash
def test_arrayize_and_mapfile():
	scalar = BashScalar.from_raw(b"string 'with quotes' and\0 null byte")
	assert scalar.arrayize() == ["string", "'with", "quotes'", "and", "null", "byte"]
	assert scalar.mapfile(b' ') == ["string", "'with", "quotes'", "and", "null", "byte"]
	assert scalar.mapfile(b'\0') == ["string 'with quotes' and null byte"]
	assert scalar.mapfile(ord("'")) == ["string ", "with quotes", " and null byte"]

	assert BashScalar.from_raw(b"").arrayize() == []


def test_mapfile_needs_single_byte():
	with pytest.raises(MalformedValueError):
		BashScalar("x", b"x").mapfile(b"ab")


@requires_bash
def test_equality_on_raw_bytes():
	scalar = BashScalar.from_raw(b"Hello \xf0\x90\x80World")
	assert scalar.to_utf8_lossy() == "Hello �World"
	assert scalar != "Hello �World"
	assert scalar == scalar.reescape()
	with pytest.raises(BashEncodingError):
		scalar.as_utf8()

	scalar = BashScalar.from_escaped("'Simple string!'")
	assert scalar.as_utf8() == "Simple string!"
	assert scalar == "Simple string!"
	assert scalar == b"Simple string!"
	assert scalar == scalar.reescape()

	quoted = {BashScalar.from_escaped("'a b'"), BashScalar.from_escaped("a\\ b"), BashScalar.from_escaped('"a b"')}
	assert len(quoted) == 1


@requires_bash
def test_reescape_normalizes():
	scalar = BashScalar.from_escaped('"double quoted"')
	assert scalar.source == '"double quoted"'
	once = scalar.reescape()
	assert once.source == "'double quoted'"
	assert once.reescape().source == once.source
	assert once == scalar


@requires_bash
def test_parse_falls_back_to_raw():
	assert BashScalar.parse("'escaped text'") == "escaped text"
	assert BashScalar.parse("just normal text") == "just normal text"


@requires_bash
def test_display_and_repr():
	scalar = BashScalar.from_raw(b"Hello \xf0\x90\x80World")
	assert repr(scalar) == "BashScalar($'Hello \\360\\220\\200World')"
	assert str(scalar) == "Hello �World"
	assert bytes(scalar) == b"Hello \xf0\x90\x80World"

	scalar = BashScalar.from_raw("another string")
	assert repr(scalar) == "BashScalar('another string')"
	assert str(scalar) == "another string"


@requires_bash
def test_paths():
	scalar = BashScalar.from_path("/boot/initramfs-linux.img")
	assert scalar.source == "/boot/initramfs-linux.img"
	assert scalar.as_path() == "/boot/initramfs-linux.img"


def test_from_escaped_with_replay(replay):
	oracle = replay([(b"INPUT=word", b"word")])
	scalar = BashScalar.from_escaped("word")
	assert scalar.raw == b"word"
	assert scalar.source == "word"
	assert oracle.scripts == [(b"INPUT=word\nprintf '%s' \"$INPUT\"", '/')]


def test_from_raw_with_replay(replay):
	oracle = replay([(b"cat ", b"OUTPUT='just some text'\n")])
	scalar = BashScalar.from_raw(b"just some text")
	assert scalar.source == "'just some text'"
	assert scalar.raw == b"just some text"

	script, cwd = oracle.scripts[0]
	assert script.startswith(b"OUTPUT=\"$(cat mkinitbench-")
	assert cwd == os.path.realpath(tempfile.gettempdir())
	filename = script.split(b"cat ")[1].split(b";")[0].decode()
	assert not os.path.exists(os.path.join(cwd, filename))


def test_errors_carry_context(replay):
	replay([(b"INPUT=bad", ShellError("bash script", 127, "bad: command not found"))])
	with pytest.raises(ShellError) as e:
		BashScalar.from_escaped("bad")
	assert str(e.value) == "while parsing possibly escaped text: 'bad': bash script failed (status = 127): bad: command not found"


def test_parse_fallback_with_replay(replay):
	replay([
		(b"INPUT=just normal text", ShellError("bash script", 127, "normal: command not found")),
		(b"cat ", b"OUTPUT='just normal text'\n"),
	])
	scalar = BashScalar.parse("just normal text")
	assert scalar.source == "'just normal text'"
	assert scalar.raw == b"just normal text"


@requires_bash
def test_array_parsing():
	array = BashArray.from_source("([0]=standard [1]=array)")
	assert array.source == "([0]=standard [1]=array)"
	assert array == ["standard", "array"]

	array = BashArray.from_source("(simplified 'bash array')")
	assert array.source == "(simplified 'bash array')"
	assert array == ["simplified", "bash array"]

	array = BashArray.from_source("([0]='bash\narray' [10]=with [100]=holes)")
	assert array == ["bash\narray", "with", "holes"]
	assert array.keys() == [0, 10, 100]

	array = BashArray.from_source("($(echo some output))")
	assert array == ["some", "output"]

	array = BashArray.from_source("  (padded)  ")
	assert array.source == "  (padded)  "
	assert array == ["padded"]


@requires_bash
def test_array_non_escaped_text():
	with pytest.raises(MalformedValueError) as e:
		BashArray.from_source("just text")
	assert "invalid array source" in str(e.value)

	with pytest.raises(MalformedValueError) as e:
		BashArray.from_source("(not closed")
	assert "invalid array source" in str(e.value)

	with pytest.raises(ShellError) as e:
		BashArray.from_source("(unclosed quote')")
	assert "unexpected EOF" in str(e.value)


@requires_bash
def test_array_stringification():
	array = BashArray.from_source("(simplified array)")
	assert array.to_bash_string() == "simplified"
	assert array.to_concatenated_string() == "simplified array"

	array = BashArray.from_source("([0]=first [1]='second item')")
	assert len(array) == 2
	assert array == ["first", "second item"]
	assert array.to_bash_string() == "first"
	assert array.to_concatenated_string() == "first second item"

	array = BashArray.from_source("([0]='bash\narray' [10]=with [100]=holes)")
	assert array.to_bash_string() == "bash\narray"
	assert array.to_concatenated_string() == "bash\narray with holes"


@requires_bash
def test_array_display():
	array = BashArray.from_source("([0]=first [3]='second item')")
	assert str(array) == "(first second\\ item)"
	assert repr(array) == "BashArray(([0]=first [3]='second item'))"


@requires_bash
def test_array_reescape():
	array = BashArray.from_source("([0]=a [1]='b c')")
	assert array.reescape().source == "(a 'b c')"
	assert array.reescape() == array

	array = BashArray.from_source("([0]=x [10]=y [12]='z z')")
	reescaped = array.reescape()
	assert reescaped.source == "([0]=x [10]=y [12]='z z')"
	assert BashArray.from_source(reescaped.source) == array
	assert reescaped.reescape().source == reescaped.source

	array = BashArray.from_source("(first '' last)")
	assert array == ["first", "", "last"]
	assert BashArray.from_source(array.reescape().source) == array


@requires_bash
def test_associative_arrays():
	array = BashArray.from_source("([one]=1 ['two words']=2 [a=b]=c)", associative=True)
	assert array.is_associative
	assert dict((k.raw, v.raw) for k, v in array.entries()) == {b"one": b"1", b"two words": b"2", b"a=b": b"c"}
	assert sorted(array.to_concatenated_string().raw.split()) == [b"1", b"2", b"c"]

	reescaped = array.reescape()
	assert BashArray.from_source(reescaped.source, associative=True) == array
	assert array != BashArray.from_source("(1 2 c)")


@requires_bash
def test_associative_bash_string():
	array = BashArray.from_source("([x]=ex [0]=zero)", associative=True)
	assert array.to_bash_string() == "zero"

	array = BashArray.from_source("([x]=ex)", associative=True)
	assert array.to_bash_string() == ""


@requires_bash
def test_trailing_whitespace():
	assert BashScalar.from_escaped("a\\ ") == "a "
	assert BashScalar.from_escaped("'tab\t'") == "tab\t"

	array = BashArray.from_source("('trailing ' x)")
	assert array == ["trailing ", "x"]
	assert array.values()[0].source == "trailing\\ "
	assert BashArray.from_source(array.reescape().source) == array

	array = BashArray.from_source("(['k ']=v [' both ']=' w ')", associative=True)
	assert dict((k.raw, v.raw) for k, v in array.entries()) == {b"k ": b"v", b" both ": b" w "}


def test_array_indexes_are_32_bit(replay):
	replay([(b"declare -a ARR=", b"4294967296=x\n")])
	with pytest.raises(BashEncodingError) as e:
		BashArray.from_source("([4294967296]=x)")
	assert "out of range" in str(e.value)

	replay([(b"declare -a ARR=", b"abc=x\n")])
	with pytest.raises(BashEncodingError):
		BashArray.from_source("([abc]=x)")


def test_mapfile_with_replay(replay):
	oracle = replay([
		(b"mapfile -d $'\\054'", b"OUTPUT=([0]=\"a\" [1]=\"b\")\n"),
		(b"declare -a ARR=", b"0=a\n1=b\n"),
		(b"INPUT=a", b"a"),
		(b"INPUT=b", b"b"),
	])
	array = BashScalar("a,b", b"a,b").mapfile(b",")
	assert array == ["a", "b"]
	assert array.keys() == [0, 1]
	assert len(oracle.scripts) == 4


@requires_bash
def test_text_variable_is_unescaped():
	var = BashValue.from_source("justASingleWord")
	assert var.scalar == "justASingleWord"
	assert var.array is None

	var = BashValue.from_source("'text with spaces'")
	assert var.scalar == "text with spaces"

	var = BashValue.from_source("$'contains\\tescapes\\n'")
	assert var.scalar == "contains\tescapes\n"

	var = BashValue.from_source("$'null character\\0 is ignored'")
	assert var.scalar == "null character"
	assert not var.is_array


@requires_bash
def test_array_variable_is_unescaped():
	var = BashValue.from_source("()")
	assert var.array == []
	assert var.scalar is None

	var = BashValue.from_source("'()'")
	assert var.array is None
	assert var.scalar == "()"

	var = BashValue.from_source("([0]=first [1]='second item')")
	assert var.array.to_concatenated_string() == "first second item"
	assert var.array == ["first", "second item"]

	var = BashValue.from_source("(nonAssociative)")
	assert var.is_array
	assert var.array == ["nonAssociative"]
