#
# Linker script rendering tests
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

import io
import os
import pytest
from rtgen import LinkerScript, FLASH, RAM, MissingSection, SinkFailure
from conftest import build, block

ORDER = ['fcb', 'vector_table', 'text', 'data', 'rodata', 'bss',
    'stack', 'heap']

def test_render(ls):
    text = ls.render()
    assert text
    assert text.count('MEMORY {') == 1
    assert text.count('SECTIONS {') == 1
    assert text.startswith('/***** AUTOGENERATED *****/\n')
    assert 'INCLUDE device.x\n' in text
    assert 'ENTRY(Reset);\n' in text
    assert text.index('ENTRY(Reset);') < text.index('MEMORY {')
    assert text.index('MEMORY {') < text.index('SECTIONS {')
    assert text.endswith('}\n')

def test_render_include(ls):
    assert 'INCLUDE imxrt1062.x\n' in ls.render(include='imxrt1062.x')

def test_render_memory(ls):
    text = ls.render()
    memory = text[text.index('MEMORY {'):text.index('}', text.index('MEMORY {'))]
    assert memory.splitlines()[1:] == [
        '    FLASH : ORIGIN = 0x0, LENGTH = 0x200',
        '    RAM : ORIGIN = 0x20000000, LENGTH = 0x80',
    ]

def test_render_region_symbols(ls):
    text = ls.render()
    sections = text[text.index('SECTIONS {'):]
    assert sections.splitlines()[1:7] == [
        '    __FLASH_origin = 0;',
        '    __FLASH_size = 512;',
        '    __FLASH_used = 0;',
        '    __RAM_origin = 536870912;',
        '    __RAM_size = 128;',
        '    __RAM_used = 0;',
    ]

def test_render_order(ls):
    text = ls.render()
    indices = [text.index('\n    .%s :\n' % name) for name in ORDER]
    assert indices == sorted(indices)
    # heap is the last consumer of its region
    assert text.rindex('\n    .') == text.index('\n    .heap :\n')

def test_render_priority_order():
    ls = LinkerScript()
    flash = ls.region(FLASH, 0x0, 0x10000)
    ram = ls.region(RAM, 0x20000000, 0x1000)
    # declaration order doesn't matter, only priority
    ls.bss(True, ram)
    ls.data(False, ram, flash)
    ls.rodata(False, flash)
    ls.text(flash)
    ls.stack(ram)
    ls.vector_table(flash)
    text = ls.render()
    indices = [text.index('\n    .%s :\n' % name)
        for name in ['vector_table', 'text', 'data', 'rodata', 'bss',
            'stack']]
    assert indices == sorted(indices)

def test_render_linker_section(ls):
    text = ls.render()
    assert block(text, 'vector_table').splitlines() == [
        '    .vector_table :',
        '    {',
        '        . = ALIGN(4);',
        '        __start_vector_table = .;',
        '        LONG(__start_stack);',
        '        *(.vector_table .vector_table.*);',
        '        . = ALIGN(4);',
        '        __end_vector_table = .;',
        '    } > FLASH AT> RAM',
        '    __load_vector_table = LOADADDR(.vector_table);',
        '    __FLASH_used = __FLASH_used + SIZEOF(.vector_table);',
        '    __RAM_used = __RAM_used + SIZEOF(.vector_table);',
    ]

@pytest.mark.parametrize('name', ['vector_table', 'text', 'data', 'bss'])
def test_render_lma_accumulators(ls, name):
    text = block(ls.render(), name)
    assert '} > FLASH AT> RAM' in text
    assert '__load_%s = LOADADDR(.%s);' % (name, name) in text
    assert '__FLASH_used = __FLASH_used + SIZEOF(.%s);' % name in text
    assert '__RAM_used = __RAM_used + SIZEOF(.%s);' % name in text

def test_render_vma_accumulator(ls):
    text = block(ls.render(), 'rodata')
    assert text.splitlines() == [
        '    .rodata :',
        '    {',
        '        . = ALIGN(4);',
        '        __start_rodata = .;',
        '        *(.rodata .rodata.*);',
        '        . = ALIGN(4);',
        '        __end_rodata = .;',
        '    } > FLASH',
        '    __FLASH_used = __FLASH_used + SIZEOF(.rodata);',
    ]
    assert '__RAM_used' not in text
    assert '__load_rodata' not in text

def test_render_fixed_section(ls):
    assert block(ls.render(), 'fcb').splitlines() == [
        '    .fcb :',
        '    {',
        '        __start_fcb = .;',
        '        . += 512;',
        '        __end_fcb = .;',
        '    } > FLASH',
        '    __FLASH_used = __FLASH_used + SIZEOF(.fcb);',
    ]

def test_render_stack_section(ls):
    text = block(ls.render(), 'stack')
    assert text.splitlines()[:8] == [
        '    .stack :',
        '    {',
        '        . = __RAM_origin + __RAM_used;',
        '        . = ALIGN(4);',
        '        __end_stack = .;',
        '        . = __RAM_origin + __RAM_size;',
        '        __start_stack = .;',
        '    } > RAM',
    ]
    assert '_used = ' not in text

def test_render_heap_section(ls):
    text = block(ls.render(), 'heap')
    assert text.splitlines() == [
        '    .heap :',
        '    {',
        '        . = __RAM_origin + __RAM_used;',
        '        . = ALIGN(4);',
        '        __start_heap = .;',
        '        . = __RAM_origin + __RAM_size;',
        '        __end_heap = .;',
        '    } > RAM',
    ]

def test_render_word64():
    ls = LinkerScript(word=64)
    flash = ls.region(FLASH, 0x100000000, 0x10000)
    ram = ls.region(RAM, 0x200000000, 0x1000)
    ls.stack(ram)
    ls.vector_table(flash)
    ls.text(flash)
    ls.data(False, ram, flash)
    ls.rodata(False, flash)
    ls.bss(False, ram)
    text = ls.render()
    assert '    FLASH : ORIGIN = 0x100000000, LENGTH = 0x10000' in text
    assert 'ALIGN(4)' not in text
    assert '        . = ALIGN(8);' in text

def test_render_idempotent(ls):
    sections = ls.sections
    assert ls.render() == ls.render()
    assert ls.sections == sections

def test_render_region_order():
    def layout(order):
        ls = LinkerScript()
        regions = {}
        for name, origin, size in order:
            regions[name] = ls.region(name, origin, size)
        ls.stack(regions[RAM])
        ls.vector_table(regions[FLASH], regions[RAM])
        ls.text(regions[FLASH], regions[RAM])
        ls.data(False, regions[FLASH], regions[RAM])
        ls.rodata(False, regions[FLASH])
        ls.bss(False, regions[FLASH], regions[RAM])
        return ls.render()

    flash = (FLASH, 0x0, 512)
    ram = (RAM, 0x20000000, 128)
    a = layout([flash, ram])
    b = layout([ram, flash])
    assert a != b
    assert a.index('    FLASH : ORIGIN') < a.index('    RAM : ORIGIN')
    assert b.index('    RAM : ORIGIN') < b.index('    FLASH : ORIGIN')
    for name in ['vector_table', 'text', 'data', 'rodata', 'bss', 'stack']:
        assert block(a, name) == block(b, name)

def test_render_to(ls):
    sink = io.StringIO()
    ls.render_to(sink)
    assert sink.getvalue() == ls.render()
    sink = io.StringIO()
    ls.write(sink, include='imxrt1062.x')
    assert sink.getvalue() == ls.render(include='imxrt1062.x')

def test_render_to_missing():
    sink = io.StringIO()
    with pytest.raises(MissingSection):
        build(skip={'stack'}).render_to(sink)
    assert sink.getvalue() == ''

def test_render_to_failure(ls):
    class BrokenSink:
        def write(self, text):
            raise OSError(28, 'No space left on device')

    with pytest.raises(SinkFailure) as e:
        ls.render_to(BrokenSink())
    assert isinstance(e.value.__cause__, OSError)

def test_generate(ls, tmp_path):
    path = ls.generate(str(tmp_path / 'link.x'))
    with open(path) as f:
        assert f.read() == ls.render()
    assert os.listdir(str(tmp_path)) == ['link.x']

def test_generate_default(ls, tmp_path, monkeypatch):
    monkeypatch.chdir(str(tmp_path))
    assert ls.generate() == 'link.x'
    assert (tmp_path / 'link.x').read_text() == ls.render()

def test_generate_replaces(ls, tmp_path):
    (tmp_path / 'link.x').write_text('stale')
    ls.generate(str(tmp_path / 'link.x'))
    assert (tmp_path / 'link.x').read_text() == ls.render()

def test_generate_missing(tmp_path):
    with pytest.raises(MissingSection):
        build(skip={'rodata'}).generate(str(tmp_path / 'link.x'))
    assert os.listdir(str(tmp_path)) == []

def test_generate_failure(ls, tmp_path):
    with pytest.raises(SinkFailure):
        ls.generate(str(tmp_path / 'missing' / 'link.x'))
    assert os.listdir(str(tmp_path)) == []

def test_generate_replace_failure(ls, tmp_path, monkeypatch):
    def replace(src, dst):
        raise OSError(13, 'Permission denied')
    monkeypatch.setattr(os, 'replace', replace)

    with pytest.raises(SinkFailure) as e:
        ls.generate(str(tmp_path / 'link.x'))
    assert isinstance(e.value.__cause__, OSError)
    assert os.listdir(str(tmp_path)) == []

def test_generate_umask(ls, tmp_path):
    umask = os.umask(0o077)
    try:
        path = ls.generate(str(tmp_path / 'link.x'))
    finally:
        os.umask(umask)
    assert os.stat(path).st_mode & 0o777 == 0o600

    umask = os.umask(0o022)
    try:
        ls.generate(path)
    finally:
        os.umask(umask)
    assert os.stat(path).st_mode & 0o777 == 0o644
