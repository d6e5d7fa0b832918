#
# Shared test layouts
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

import pytest
from rtgen import LinkerScript, FLASH, RAM

RECIPE = """\
word = 32
heap = "RAM"

[region.FLASH]
origin = "0x0"
size = 512

[region.RAM]
origin = "0x20000000"
size = 128

[boot_config.fcb]
size = 512
vma = "FLASH"

[stack]
vma = "RAM"

[vector_table]
vma = "FLASH"
lma = "RAM"

[text]
vma = "FLASH"
lma = "RAM"

[data]
prefix = false
vma = "FLASH"
lma = "RAM"

[rodata]
vma = "FLASH"

[bss]
vma = "FLASH"
lma = "RAM"
"""

def build(skip=()):
    ls = LinkerScript()
    flash = ls.region(FLASH, 0x0, 512)
    ram = ls.region(RAM, 0x20000000, 128)
    if 'stack' not in skip:
        ls.stack(ram)
    if 'heap' not in skip:
        ls.heap(ram)
    if 'fcb' not in skip:
        ls.boot_config(512, 'fcb', flash)
    if 'vector_table' not in skip:
        ls.vector_table(flash, ram)
    if 'text' not in skip:
        ls.text(flash, ram)
    if 'data' not in skip:
        ls.data(False, flash, ram)
    if 'rodata' not in skip:
        ls.rodata(False, flash, None)
    if 'bss' not in skip:
        ls.bss(False, flash, ram)
    return ls

def block(text, name):
    """
    Extract the rendered block of a section, up to the next blank line
    or the end of SECTIONS.
    """
    start = text.index('\n    .%s :\n' % name) + 1
    end = text.find('\n\n', start)
    if end < 0:
        end = text.rindex('\n}')
    return text[start:end]

@pytest.fixture
def ls():
    return build()

@pytest.fixture
def recipe(tmp_path):
    (tmp_path / 'layout.toml').write_text(RECIPE)
    return tmp_path
