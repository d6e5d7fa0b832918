#
# Linker script output
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

from .. import outputs
from ..layout import LinkerSize, FixedSize, StackSize, HeapSize

# exception/interrupt symbols expected by the device crate, this is
# not derived from the layout
HEADER = """\
INCLUDE %(include)s
ENTRY(Reset);
EXTERN(__RESET_VECTOR); /* depends on the `Reset` symbol */

/* # Exception vectors */
/* This is effectively weak aliasing at the linker level */
/* The user can override any of these aliases by defining the corresponding symbol themselves (cf.
   the `exception!` macro) */
EXTERN(__EXCEPTIONS); /* depends on all the these PROVIDED symbols */

EXTERN(DefaultHandler);

PROVIDE(NonMaskableInt = DefaultHandler);
EXTERN(HardFaultTrampoline);
PROVIDE(MemoryManagement = DefaultHandler);
PROVIDE(BusFault = DefaultHandler);
PROVIDE(UsageFault = DefaultHandler);
PROVIDE(SecureFault = DefaultHandler);
PROVIDE(SVCall = DefaultHandler);
PROVIDE(DebugMonitor = DefaultHandler);
PROVIDE(PendSV = DefaultHandler);
PROVIDE(SysTick = DefaultHandler);

PROVIDE(DefaultHandler = DefaultHandler_);
PROVIDE(HardFault = HardFault_);

/* # Interrupt vectors */
EXTERN(__INTERRUPTS); /* `static` variable similar to `__EXCEPTIONS` */
"""

def buildused(outf, region):
    outf.printf('__%(region)s_used = __%(region)s_used + SIZEOF(%(section)s);',
        region=region.name)

def buildlinker(outf, section):
    outf.printf('%(section)s :')
    outf.printf('{')
    with outf.pushindent():
        outf.printf('. = ALIGN(%(align)d);')
        outf.printf('__start_%(name)s = .;')
        if section.preamble:
            outf.printf('%(preamble)s', preamble=section.preamble)
        outf.printf('*(%(section)s %(section)s.*);')
        outf.printf('. = ALIGN(%(align)d);')
        outf.printf('__end_%(name)s = .;')
    if section.lma:
        outf.printf('} > %(vma)s AT> %(lma)s')
        outf.printf('__load_%(name)s = LOADADDR(%(section)s);')
        buildused(outf, section.vma)
        buildused(outf, section.lma)
    else:
        outf.printf('} > %(vma)s')
        buildused(outf, section.vma)

def buildfixed(outf, section):
    outf.printf('%(section)s :')
    outf.printf('{')
    with outf.pushindent():
        outf.printf('__start_%(name)s = .;')
        outf.printf('. += %(size)d;', size=section.size.size)
        outf.printf('__end_%(name)s = .;')
    outf.printf('} > %(vma)s')
    buildused(outf, section.vma)

def buildstack(outf, section):
    # stack grows down, start is the top of the region
    outf.printf('%(section)s :')
    outf.printf('{')
    with outf.pushindent():
        outf.printf('. = __%(vma)s_origin + __%(vma)s_used;')
        outf.printf('. = ALIGN(%(align)d);')
        outf.printf('__end_%(name)s = .;')
        outf.printf('. = __%(vma)s_origin + __%(vma)s_size;')
        outf.printf('__start_%(name)s = .;')
    outf.printf('} > %(vma)s')

def buildheap(outf, section):
    outf.printf('%(section)s :')
    outf.printf('{')
    with outf.pushindent():
        outf.printf('. = __%(vma)s_origin + __%(vma)s_used;')
        outf.printf('. = ALIGN(%(align)d);')
        outf.printf('__start_%(name)s = .;')
        outf.printf('. = __%(vma)s_origin + __%(vma)s_size;')
        outf.printf('__end_%(name)s = .;')
    outf.printf('} > %(vma)s')

RULES = {
    LinkerSize: buildlinker,
    FixedSize: buildfixed,
    StackSize: buildstack,
    HeapSize: buildheap,
}

class LdOutput(outputs.OutputBlob):
    """
    Linker script describing the memory regions and placing each section
    in priority order. Stack and heap sections are placed last in their
    regions using the __<region>_used symbols accumulated by the sections
    before them.
    """
    def __init__(self, include='device.x'):
        super().__init__(include=include)
        self.memories = outputs.OutputField(self,
            indent=4,
            memory=None,
            origin=None,
            size=None)
        self.symbols = outputs.OutputField(self,
            indent=4,
            memory=None)
        self.sections = outputs.OutputField(self,
            indent=4,
            section=None,
            name=None,
            vma=None,
            lma=None,
            align=4)

    def build(self, ls):
        for region in ls.regions:
            self.memories.append(
                '%(memory)s : ORIGIN = %(origin)s, LENGTH = %(size)s',
                memory=region.name,
                origin=ls.word.hex(region.origin),
                size=ls.word.hex(region.size))

            out = self.symbols.append(memory=region.name)
            out.printf('__%(memory)s_origin = %(origin)d;',
                origin=region.origin)
            out.printf('__%(memory)s_size = %(size)d;',
                size=region.size)
            out.printf('__%(memory)s_used = 0;')

        for section in ls.sorted_sections():
            out = self.sections.append(
                section='.' + section.name,
                name=section.name,
                vma=section.vma.name,
                lma=section.lma.name if section.lma else None,
                align=ls.word.align)
            RULES[type(section.size)](out, section)

    def getvalue(self):
        self.seek(0)
        self.printf('/***** AUTOGENERATED *****/')
        self.printf()
        self.printf(HEADER)

        self.print('MEMORY {')
        for memory in self.memories:
            self.print(4*' ' + str(memory).strip())
        self.print('}')
        self.print()

        self.print('SECTIONS {')
        for symbols in self.symbols:
            self.print(4*' ' + str(symbols).strip())
        for section in self.sections:
            self.print()
            self.print(4*' ' + str(section).strip())
        self.print('}')

        self.truncate()
        return super().getvalue()
