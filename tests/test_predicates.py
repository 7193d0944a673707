import pytest

from advreplace.services.predicates import make_where_clause, split_list, split_pair


@pytest.mark.parametrize(
    "kwargs, expected_where, expected_params",
    [
        ({}, "", {}),
        (
            {"components": "mod_h5p"},
            "( (component=:param1) )",
            {"param1": "mod_h5p"},
        ),
        (
            {"components": "mod_h5p:content"},
            "( (component=:param1 AND filearea=:param2) )",
            {"param1": "mod_h5p", "param2": "content"},
        ),
        (
            {"components": "mod_hvp:content,course"},
            "( (component=:param1 AND filearea=:param2) OR (component=:param3) )",
            {"param1": "mod_hvp", "param2": "content", "param3": "course"},
        ),
        (
            {"mimetypes": "application/zip.h5p,image/jpeg,plain/text"},
            "( (mimetype=:param1) OR (mimetype=:param2) OR (mimetype=:param3) )",
            {"param1": "application/zip.h5p", "param2": "image/jpeg", "param3": "plain/text"},
        ),
        (
            {"filenames": "content.html,example.php"},
            "( (filename=:param1) OR (filename=:param2) )",
            {"param1": "content.html", "param2": "example.php"},
        ),
        (
            {"skip_components": "mod_assign"},
            "(component!=:param1)",
            {"param1": "mod_assign"},
        ),
        (
            {"skip_components": "mod_assign,second_one"},
            "(component!=:param1) AND (component!=:param2)",
            {"param1": "mod_assign", "param2": "second_one"},
        ),
        (
            {"skip_mimetypes": "image/png"},
            "(mimetype!=:param1)",
            {"param1": "image/png"},
        ),
    ],
)
def test_make_where_clause(kwargs, expected_where, expected_params):
    where, params = make_where_clause(**kwargs)
    assert where == expected_where
    assert params == expected_params


def test_make_where_clause_all_options():
    where, params = make_where_clause(
        components="goodcomponent:goodarea",
        skip_components="badcomponent",
        skip_areas="badarea,anotherbadarea",
        mimetypes="application/zip.h5p",
        skip_mimetypes="image/jpeg,image/png",
        filenames="content.html",
        skip_filenames="favicon.png",
    )
    assert where == (
        "( (component=:param1 AND filearea=:param2) ) AND ( (mimetype=:param3) ) AND ( (filename=:param4) )"
        " AND (component!=:param5) AND (mimetype!=:param6) AND (mimetype!=:param7)"
        " AND (filename!=:param8) AND (filearea!=:param9) AND (filearea!=:param10)"
    )
    assert params == {
        "param1": "goodcomponent",
        "param2": "goodarea",
        "param3": "application/zip.h5p",
        "param4": "content.html",
        "param5": "badcomponent",
        "param6": "image/jpeg",
        "param7": "image/png",
        "param8": "favicon.png",
        "param9": "badarea",
        "param10": "anotherbadarea",
    }


def test_blank_alternatives_are_ignored():
    where, params = make_where_clause(components=" mod_page , ,:", skip_areas=",,")
    assert where == "( (component=:param1) )"
    assert params == {"param1": "mod_page"}


def test_filearea_without_a_component_still_restricts():
    where, params = make_where_clause(components=":content")
    assert where == "( (filearea=:param1) )"
    assert params == {"param1": "content"}

    where, params = make_where_clause(components="mod_page, :content")
    assert where == "( (component=:param1) OR (filearea=:param2) )"
    assert params == {"param1": "mod_page", "param2": "content"}


def test_split_helpers():
    assert split_list("a, b\nc,,") == ["a", "b", "c"]
    assert split_list(None) == []
    assert split_pair("page:content") == ("page", "content")
    assert split_pair("page") == ("page", "")
