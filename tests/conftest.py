"""Shared fixtures."""

import json
import logging

import pytest

from fabrica.config import BuildConfig, Settings


def write(path, content):
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    return path


@pytest.fixture(autouse=True)
def reset_fabrica_logger():
    """Undo configure_logging() calls made by CLI tests."""
    logger = logging.getLogger('fabrica')
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def project(tmp_path):
    """A small theme project with every kind of asset."""
    src = tmp_path / "dev" / "src"
    write(src / "assets/css/base.css", "$brand: #c00;\na {\n  color: $brand;\n}\n")
    write(src / "assets/css/layout.css", ".wrap {\n  margin: 0 auto;\n}\n")
    write(src / "assets/js/main.js", "// app\nvar app = {};\n")
    write(src / "assets/js/nav.js", "app.nav = function () {\n    return 1;\n};\n")
    write(src / "assets/img/logo.svg", '<svg xmlns="http://www.w3.org/2000/svg"/>')
    write(src / "assets/fonts/icons.woff", b"wOFF\x00\x01")
    write(src / "includes/a.php", "<?php // a")
    write(src / "includes/vendor/b.php", "<?php // b")
    write(src / "includes/c.php", "<?php // c")
    write(src / "includes/.env", "ACF_PRO_KEY=x")
    write(src / "templates/controllers/single.php", "<?php // single")
    write(src / "templates/views/partials/header.twig", "<header></header>")
    write(src / "templates/views/single.twig", "{% include 'header.twig' %}")
    write(src / "bower.json", json.dumps({"dependencies": {"jquery": "^3.0"}}))
    write(src / "bower_components/jquery/.bower.json", json.dumps({"main": "dist/jquery.js"}))
    write(src / "bower_components/jquery/dist/jquery.js", "window.jQuery = {};\n")

    write(tmp_path / "site.yml", "slug: acme\nhostname: acme.dev\ntitle: Acme\nreload_port: 0\n")

    config = BuildConfig(root=tmp_path, settings=Settings(slug='acme', hostname='acme.dev',
                                                          title='Acme', reload_port=0))
    write(config.theme / "acf-json/group_1.json", '{"key": "group_1"}')
    return config
