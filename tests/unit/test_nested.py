"""Unit tests for NestedBlock parsing, construction and rendering."""

import pytest

from regenblocks.editor.blocks import TextBlock
from regenblocks.editor.editor import CodeEditor
from regenblocks.editor.exceptions import (
    AmbiguousNameMatchError,
    DuplicateBlockNameError,
    MalformedDelimiterError,
    MissingBlockError,
    RegenBlocksError,
)
from regenblocks.editor.nested import (
    COMMENT_COL,
    BlockBuilder,
    ChildBlocks,
    NestedBlock,
    to_lines,
)


CLASS_TEXT = """\
//+ Usings
using System;
//- Usings
class Patient
{
    //+ Fields
    int id;
    //- Fields
}
"""


class TestToLines:
    """Tests for splitting text into lines."""

    def test_split(self):
        assert to_lines("a\nb") == ["a", "b"]

    def test_crlf(self):
        assert to_lines("a\r\nb") == ["a", "b"]

    def test_empty_string_is_one_line(self):
        assert to_lines("") == [""]


class TestChildBlocks:
    """Tests for the ordered child list and its name index."""

    def test_append_indexes_named_blocks(self, editor):
        children = ChildBlocks()
        text = children.append(TextBlock(["x"]))
        block = children.append(NestedBlock(editor.context, "A"))

        assert list(children) == [text, block]
        assert children.get("A") is block
        assert children.named == [block]

    def test_anonymous_blocks_not_indexed(self, editor):
        children = ChildBlocks()
        children.append(NestedBlock(editor.context))
        children.append(NestedBlock(editor.context))

        assert len(children) == 2
        assert children.named == []

    def test_duplicate_name_rejected(self, editor):
        children = ChildBlocks()
        children.append(NestedBlock(editor.context, "A"))

        with pytest.raises(DuplicateBlockNameError, match="'A'"):
            children.append(NestedBlock(editor.context, "A"))

        assert len(children) == 1

    def test_remove_where_updates_index(self, editor):
        children = ChildBlocks()
        a = children.append(NestedBlock(editor.context, "A"))
        b = children.append(NestedBlock(editor.context, "B"))

        removed = children.remove_where(lambda block: block is a)

        assert removed == [a]
        assert list(children) == [b]
        assert children.get("A") is None
        assert children.get("B") is b

    def test_iteration_is_over_a_snapshot(self, editor):
        """Test appending while iterating does not extend the iteration."""
        children = ChildBlocks()
        children.append(TextBlock())
        seen = []
        for child in children:
            seen.append(child)
            children.append(TextBlock())

        assert len(seen) == 1
        assert len(children) == 2


class TestParsing:
    """Tests for loading marker-delimited text."""

    def test_structure(self, load_text):
        """Test named blocks and text runs become children in order."""
        editor = load_text(CLASS_TEXT)
        children = list(editor.blocks.children)

        assert [type(c).__name__ for c in children] == [
            "NestedBlock",
            "TextBlock",
            "NestedBlock",
            "TextBlock",
        ]
        assert children[0].name == "Usings"
        assert children[1].code == ["class Patient", "{"]
        assert children[2].name == "Fields"
        assert children[3].code == ["}"]

    def test_round_trip(self, load_text):
        """Test rendering a parsed file reproduces it."""
        editor = load_text(CLASS_TEXT)

        assert str(editor) == CLASS_TEXT

    def test_marker_lines_and_margin_captured(self, load_text):
        editor = load_text(CLASS_TEXT)
        fields = editor.blocks.find("Fields")

        assert fields.start_line == "    //+ Fields"
        assert fields.end_line == "    //- Fields"
        assert fields.base_margin == "    "

    def test_nested_blocks(self, load_text):
        editor = load_text("""\
            //+ Class
            //+ Fields
            int x;
            //- Fields
            //- Class
            """)
        outer = editor.blocks.find("Class")

        assert outer.find("Fields").code == ["int x;"]
        assert editor.blocks.find("Fields") is None

    def test_end_marker_name_is_not_checked(self, load_text):
        """Test any end marker closes the innermost open block."""
        editor = load_text("""\
            //+ A
            x
            //- B
            """)

        assert editor.blocks.find("A").code == ["x"]
        assert editor.blocks.find("A").end_line == "//- B"

    def test_anonymous_block(self, load_text):
        editor = load_text("""\
            //+
            anon
            //-
            """)
        block = editor.blocks.children[0]

        assert isinstance(block, NestedBlock)
        assert block.name == ""
        assert editor.blocks.named_blocks == []
        assert editor.lines() == ["anon"]

    def test_unmatched_end_marker(self, load_text):
        with pytest.raises(MalformedDelimiterError, match="Unmatched block end") as exc_info:
            load_text("""\
                x
                //- Stray
                """)

        assert exc_info.value.line == "//- Stray"

    def test_duplicate_sibling_names(self, load_text):
        with pytest.raises(DuplicateBlockNameError):
            load_text("""\
                //+ A
                //- A
                //+ A
                //- A
                """)

    def test_same_name_in_different_parents(self, load_text):
        editor = load_text("""\
            //+ A
            //+ Body
            //- Body
            //- A
            //+ B
            //+ Body
            //- Body
            //- B
            """)

        assert editor.blocks.find("A").find("Body") is not editor.blocks.find("B").find("Body")

    def test_start_terminator(self, load_text):
        editor = load_text(
            """\
            <!--+ Header -->
            <h1>Title</h1>
            <!--- Header -->
            """,
            CodeEditor(
                block_start="<!--+",
                block_start_term="-->",
                block_end="<!---",
                block_end_term=" -->",
            ),
        )

        assert editor.blocks.find("Header").code == ["<h1>Title</h1>"]

    def test_missing_start_terminator(self, load_text):
        with pytest.raises(MalformedDelimiterError, match="Invalid termination"):
            load_text(
                """\
                #+ Header
                #- Header
                """,
                CodeEditor(block_start="#+", block_start_term=":", block_end="#-"),
            )

    def test_macros_expanded_while_loading(self, editor, load_text):
        editor.add_user_macro("Type", "Patient")
        load_text("class %Type%\n", editor)

        assert editor.lines() == ["class Patient"]

    def test_multi_line_macro_value_split_into_lines(self, editor, load_text):
        editor.add_user_macro("Usings", ["using A;", "using B;"])
        load_text("%Usings:lb%\n", editor)

        assert editor.lines() == ["", "using A;", "using B;"]

    def test_load_string(self, editor):
        editor.blocks.load("a\nb")

        assert editor.lines() == ["a", "b"]

    def test_load_replaces_previous_content(self, editor, load_text):
        load_text("first\n", editor)
        load_text("second\n", editor)

        assert editor.lines() == ["second"]

    def test_add_margin(self, editor):
        block = editor.blocks.find("Fields", create=True).set_base_margin(1)
        block.load(["int x;", "int y;"], add_margin=True)

        assert block.all_lines() == ["//+ Fields", "    int x;", "    int y;", "//- Fields"]

    def test_reload_expands_late_macros(self, editor, load_text):
        load_text("class %Type%\n", editor)
        assert editor.lines() == ["class %Type%"]

        editor.add_user_macro("Type", "Patient")
        editor.blocks.reload()

        assert editor.lines() == ["class Patient"]


class TestLookup:
    """Tests for find, replace and name matching."""

    def test_find_missing(self, editor):
        assert editor.blocks.find("Missing") is None

    def test_find_create(self, editor):
        block = editor.blocks.find("New", create=True)

        assert block.start_line == "//+ New"
        assert block.end_line == "//- New"
        assert editor.blocks.find("New") is block

    def test_find_required(self, load_text):
        editor = load_text(CLASS_TEXT)

        assert editor.blocks.find_required("Usings").code == ["using System;"]
        with pytest.raises(MissingBlockError, match="'Missing'"):
            editor.blocks.find_required("Missing")

    def test_replace(self, load_text):
        editor = load_text(CLASS_TEXT)

        assert editor.blocks.replace("Usings", "using System.IO;") is True
        assert editor.blocks.find("Usings").code == ["using System.IO;"]

    def test_replace_missing_block(self, load_text):
        editor = load_text(CLASS_TEXT)

        assert editor.blocks.replace("Missing", "x") is False
        assert str(editor) == CLASS_TEXT

    def test_match_name(self, editor):
        block = NestedBlock(editor.context, "GeneratedFields")

        assert block.match_name("Generated.*")
        assert block.match_name("Fields")
        assert not block.match_name("Custom")

    def test_match_name_ambiguous(self, editor):
        block = NestedBlock(editor.context, "FieldsAndFields")

        with pytest.raises(AmbiguousNameMatchError):
            block.match_name("Fields")

    def test_empty_matches_not_counted(self, editor):
        assert not NestedBlock(editor.context).match_name(".*")
        assert NestedBlock(editor.context, "Name").match_name(".*")

    def test_match_all_pattern_merges_named_children_only(self, load_text):
        """Test merging with ".*" walks named children instead of replacing the root."""
        target = load_text("hand written\n//+ A\nold\n//- A\n")
        source = load_text("generated\n//+ A\nnew\n//- A\n")

        target.merge(".*", source)

        assert target.lines() == ["hand written", "//+ A", "new", "//- A"]


class TestConstruction:
    """Tests for building blocks programmatically."""

    def test_append_line_uses_margin(self, editor):
        block = editor.blocks.append_block("Body").set_base_margin(1).set_indent(1)
        block.append_line("x;")

        assert block.code == ["        x;"]

    def test_append_line_explicit_margin(self, editor):
        block = editor.blocks.append_block("Body").set_base_margin(1)
        block.append_line("x;", margin="")

        assert block.code == ["x;"]

    def test_append_line_expands_macros(self, editor):
        editor.add_user_macro("Name", "id")
        editor.blocks.append_line("int %Name%;")

        assert editor.lines() == ["int id;"]

    def test_append_unique_line(self, editor):
        block = editor.blocks.append_block("Usings")
        block.append_unique_line("using A;")
        block.append_unique_line("using B;")
        block.append_unique_line("using A;", margin="  ")

        assert block.code == ["using A;", "using B;"]

    def test_append_unique_line_multi_line_expansion(self, editor):
        """Test a list macro expanded with lb is appended once."""
        editor.add_user_macro("Usings", ["using System;", "using System.IO;"])
        editor.blocks.append_unique_line("%Usings:lb%")
        editor.blocks.append_unique_line("%Usings:lb%")

        assert editor.lines() == ["", "using System;", "using System.IO;"]

    def test_append_unique_line_partial_run_appended(self, editor):
        """Test lines that only partly exist are still appended."""
        editor.add_user_macro("Usings", ["using System;", "using System.IO;"])
        editor.blocks.append_line("using System;")
        editor.blocks.append_unique_line("%Usings:lb%")

        assert editor.lines() == ["using System;", "", "using System;", "using System.IO;"]

    def test_append_lines(self, editor):
        editor.blocks.append_lines("- ", ["a", "b"])

        assert editor.lines() == ["- a", "- b"]

    def test_append_raw_is_verbatim(self, editor):
        editor.add_user_macro("Name", "id")
        block = editor.blocks.append_block("Body").set_indent(1)
        block.append_raw("%Name%\nsecond")

        assert block.code == ["%Name%", "second"]

    def test_text_after_child_starts_new_text_block(self, editor):
        root = editor.blocks
        root.append_line("before")
        root.append_block("Middle")
        root.append_line("after")

        assert len(root.children) == 3
        assert editor.lines() == ["before", "//+ Middle", "//- Middle", "after"]

    def test_append_comment_does_not_expand_macros(self, editor):
        editor.add_user_macro("Name", "id")
        editor.blocks.append_comment("%Name% is 100% done")

        assert editor.lines() == ["// %Name% is 100% done"]

    def test_append_comment_wraps_long_text(self, editor):
        editor.blocks.append_comment("word " * 20)

        assert editor.lines() == [
            "// " + " ".join(["word"] * 13),
            "// " + " ".join(["word"] * 7),
        ]

    def test_append_comment_splits_on_newline(self, editor):
        editor.blocks.append_comment("first\r\nsecond", prefix="# ")

        assert editor.lines() == ["# first", "# second"]

    def test_append_comment_none(self, editor):
        editor.blocks.append_comment(None)

        assert editor.lines() == []

    def test_append_comments(self, editor):
        editor.add_user_macro("Name", "id")
        editor.blocks.append_comments("a", "%Name%")

        assert editor.lines() == ["// a", "// %Name%"]
        assert editor.blocks.macro_inhibit == 0

    def test_braces(self, editor):
        block = editor.blocks.append_block("Method")
        block.append_code("void F()").open_brace().append_code("return;").close_brace()

        assert block.code == ["void F()", "{", "    return;", "}"]

    def test_close_brace_terminator(self, editor):
        block = editor.blocks.append_block("Init")
        block.open_brace().close_brace(";")

        assert block.code == ["{", "};"]

    def test_unindent_below_zero(self, editor):
        with pytest.raises(ValueError, match="not indented"):
            editor.blocks.append_block("Body").close_brace()

    def test_blank_line(self, editor):
        block = editor.blocks.append_block("Body").set_indent(1)
        block.blank_line()

        assert block.code == ["    "]

    def test_call_and_when(self, editor):
        root = editor.blocks
        root.call(lambda b: b.append_line("called"))
        root.when(True, lambda b: b.append_line("yes"), lambda b: b.append_line("no"))
        root.when(False, lambda b: b.append_line("yes"), lambda b: b.append_line("no"))
        root.when(False, lambda b: b.append_line("skipped"))

        assert editor.lines() == ["called", "yes", "no"]

    def test_append_block_at_current_margin(self, editor):
        parent = editor.blocks.append_block("Class").set_base_margin(1)
        child = parent.append_block("Fields")

        assert child.start_line == "    //+ Fields"
        assert child.base_margin == "    "

    def test_insert_block(self, editor):
        parent = editor.blocks.append_block("Class").set_indent(1)
        block = NestedBlock(editor.context, "Inserted")
        block.append_line("x")

        assert parent.insert_block(block) is parent
        assert block.start_line == "    //+ Inserted"
        assert block.end_line == "    //- Inserted"
        assert parent.find("Inserted") is block

    def test_insert_anonymous_block(self, editor):
        block = NestedBlock(editor.context)
        block.append_line("x")
        editor.blocks.insert_block(block)

        assert editor.lines() == ["x"]

    def test_append_child(self, editor):
        text = editor.blocks.append_child(TextBlock(["raw"]))

        assert editor.blocks.children[0] is text
        assert editor.lines() == ["raw"]

    def test_code_creates_text_block(self, editor):
        block = editor.blocks.append_block("Body")
        block.code.append("x")

        assert block.lines() == ["x"]

    def test_code_on_mixed_block(self, editor):
        block = editor.blocks.append_block("Body")
        block.append_line("x")
        block.append_block("Inner")

        with pytest.raises(RegenBlocksError, match="Invalid block access"):
            block.code

    def test_copy_is_deep(self, editor):
        block = editor.blocks.append_block("Body")
        block.append_line("x")
        block.append_block("Inner").append_line("y")

        clone = block.copy()
        clone.find("Inner").code.append("z")
        clone.children[0].code.append("w")

        assert block.lines() == ["x", "//+ Inner", "y", "//- Inner"]
        assert clone.context is editor.context

    def test_copy_rebinds_context(self, editor):
        other = CodeEditor()
        block = editor.blocks.append_block("Body")
        block.append_block("Inner")

        clone = block.copy(other.context)

        assert clone.context is other.context
        assert clone.find("Inner").context is other.context

    def test_indent_marker_lines(self, editor):
        block = editor.blocks.append_block("Body")
        block.indent_marker_lines(2)

        assert block.start_line == "        //+ Body"
        assert block.end_line == "        //- Body"
        assert block.base_margin == "        "

    def test_start_line_sets_margin(self, editor):
        block = NestedBlock(editor.context, "X")
        block.start_line = "\t//+ X"

        assert block.base_margin == "\t"
        assert block.margin_length == 1

    def test_is_empty(self, editor):
        block = editor.blocks.append_block("Body")
        assert block.is_empty

        block.code
        assert block.is_empty

        block.append_line("x")
        assert not block.is_empty

    def test_has_text_blocks_counts_anonymous_blocks(self, editor):
        block = editor.blocks.append_block("Body")
        block.append_block("Named")
        assert block.has_named_blocks
        assert not block.has_text_blocks

        block.append_block()
        assert block.has_text_blocks


class TestBlockBuilder:
    """Tests for start_block scopes."""

    def test_with_scope(self, editor):
        builder = editor.blocks.start_block("Fields")
        with builder as fields:
            fields.append_line("int x;")

        assert builder.closed
        assert editor.lines() == ["//+ Fields", "int x;", "//- Fields"]

    def test_scope_closed_on_error(self, editor):
        builder = editor.blocks.start_block("Fields")
        with pytest.raises(RuntimeError):
            with builder:
                raise RuntimeError("boom")

        assert builder.closed

    def test_end_returns_parent(self, editor):
        builder = editor.blocks.start_block("Fields")

        assert isinstance(builder, BlockBuilder)
        assert builder.end() is editor.blocks
        assert builder.closed

    def test_closed_scope_rejects_use(self, editor):
        """Test a closed scope no longer hands out its block."""
        builder = editor.blocks.start_block("Fields")
        builder.end()

        with pytest.raises(RegenBlocksError, match="already closed"):
            builder.block
        with pytest.raises(RegenBlocksError, match="already closed"):
            with builder:
                pass
        with pytest.raises(RegenBlocksError, match="already closed"):
            builder.end()

    def test_explicit_end_inside_with(self, editor):
        builder = editor.blocks.start_block("Fields")
        with builder as fields:
            fields.append_line("int x;")
            assert builder.end() is editor.blocks

        assert builder.closed
        assert editor.lines() == ["//+ Fields", "int x;", "//- Fields"]


class TestRendering:
    """Tests for lines/all_lines/text."""

    def test_hidden_markers(self, editor):
        block = editor.blocks.append_block("*Hidden")
        block.append_line("x")

        assert block.all_lines() == ["x"]
        assert editor.blocks.find("*Hidden") is block

    def test_text_and_all_text(self, editor):
        block = editor.blocks.append_block("Body")
        block.append_line("x")

        assert block.text() == "x\n"
        assert block.all_text() == "//+ Body\nx\n//- Body\n"

    def test_repr(self, editor):
        assert repr(NestedBlock(editor.context, "Body")) == "NestedBlock('Body')"


class TestDebugCallSites:
    """Tests for call-site comments on generated code lines."""

    def test_append_code_gets_call_site(self, editor):
        CodeEditor.set_debug_flag(True)
        editor.blocks.append_code("x;")

        line = editor.lines()[0]
        assert line.startswith("x;")
        assert line.index("// test_nested.py:") == COMMENT_COL

    def test_braces_get_call_site(self, editor):
        CodeEditor.set_debug_flag(True)
        editor.blocks.open_brace()

        assert "// test_nested.py:" in editor.lines()[0]

    def test_append_line_has_no_call_site(self, editor):
        CodeEditor.set_debug_flag(True)
        editor.blocks.append_line("x;")

        assert editor.lines() == ["x;"]

    def test_off_by_default(self, editor):
        editor.blocks.append_code("x;")

        assert editor.lines() == ["x;"]

