def test_import_intfic_package() -> None:
    import importlib

    module = importlib.import_module("intfic")
    assert module is not None
    assert module.__version__


def test_import_parser_no_side_effects() -> None:
    from intfic.data.markup_parser import parse_story

    story = parse_story("@block a\nHi\n@end\n")
    assert story.block_names() == ["a"]
