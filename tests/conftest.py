import os

import pytest

from support import EMPTY_LOCALE_FILE, make_config, write_file


@pytest.fixture
def flutter_project(tmp_path):
    """A minimal Flutter project with an English, a French and an Arabic locale file."""
    root = str(tmp_path)
    translations_dir = os.path.join(root, 'lib', 'translations')
    write_file(
        os.path.join(translations_dir, 'en_US.dart'),
        'final Map<String, String> enUS = {\n  "hello": "Hello",\n};\n'
    )
    write_file(os.path.join(translations_dir, 'fr.dart'), EMPTY_LOCALE_FILE.format(name='fr'))
    write_file(os.path.join(translations_dir, 'ar.dart'), EMPTY_LOCALE_FILE.format(name='ar'))
    write_file(
        os.path.join(root, 'lib', 'pages', 'home_page.dart'),
        "Text('hello'.tr);\nText(\"new_key\".tr);\nText('hello'.tr);\n"
    )
    return root


@pytest.fixture
def test_config(flutter_project):
    return make_config(flutter_project)
