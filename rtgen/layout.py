#
# Memory layout description
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

import re
import os
import tempfile
import collections as co
from . import argstuff
from .argstuff import ArgumentParser
from .word import Word
from .errors import (
    DuplicateRegion, DuplicateSection, MissingSection,
    UnknownRegion, UnknownVMA, UnknownLMA, SinkFailure)

# commonly used region names
FLASH = 'FLASH'
RAM = 'RAM'

# sections that must be declared before generating
REQUIRED = ['stack', 'vector_table', 'text', 'data', 'rodata', 'bss']

PRIORITY_MAX = 2**31 - 1

def checkname(kind, name):
    namepattern = r'[a-zA-Z_][a-zA-Z_0-9]*'
    if not isinstance(name, str) or not re.match('^%s$' % namepattern, name):
        raise ValueError("Invalid %s name %r" % (kind, name))
    return name

class Handle:
    """
    Handle to something declared in a LinkerScript. Handles compare by
    name, but remember which LinkerScript issued them.
    """
    def __init__(self, name, owner=None, index=None):
        self.name = name
        self._owner = owner
        self._index = index

    def __eq__(self, other):
        if type(other) is type(self):
            return self.name == other.name
        return NotImplemented

    def __lt__(self, other):
        return self.name < other.name

    def __hash__(self):
        return hash((type(self), self.name))

    def __str__(self):
        return self.name

    def __repr__(self):
        return '%s(%r)' % (type(self).__name__, self.name)

class RegionID(Handle):
    """
    Handle to a region declared in a LinkerScript.
    """

class SectionID(Handle):
    """
    Handle to a section declared in a LinkerScript.
    """

class Region:
    """
    Named window of target memory.
    """
    def __init__(self, name, origin, size, word=None):
        word = word or Word()
        self.name = checkname('region', name)
        self.origin = word(origin)
        self.size = word(size)
        if self.origin + self.size > word.max + 1:
            raise ValueError("Region %s at %#x with size %#x overflows "
                "the %d-bit address space" % (
                    self.name, self.origin, self.size, word.width))

    def __str__(self):
        return "%(range)s %(size)d bytes" % dict(
            range='%#010x-%#010x' % (self.origin, self.origin+self.size-1)
                if self.size else
                '%#010x' % self.origin,
            size=self.size)

class SectionSize:
    """
    How a section is sized. Sizes are only known to the linker, this only
    describes the rule the linker uses.
    """
    kind = None

    def __eq__(self, other):
        return type(self) is type(other) and vars(self) == vars(other)

    def __hash__(self):
        return hash((type(self), tuple(sorted(vars(self).items()))))

    def __str__(self):
        return self.kind

class LinkerSize(SectionSize):
    """
    The linker sums up every input section matching the section's name.
    """
    kind = 'linker'

class FixedSize(SectionSize):
    """
    Exactly size bytes are reserved, regardless of contents.
    """
    kind = 'fixed'

    def __init__(self, size):
        self.size = size

    def __str__(self):
        return 'fixed %d bytes' % self.size

class StackSize(SectionSize):
    """
    Takes the unused remainder of the region. The start of the stack is
    at the top of the region and grows down toward the used space.
    """
    kind = 'stack'

class HeapSize(SectionSize):
    """
    Takes the unused remainder of the region, growing up. If a stack and
    heap share a region they overlap.
    """
    kind = 'heap'

class Section:
    """
    Where in memory part of the program is placed, optionally loaded from
    another region, and how it is sized.

    Sections are placed from the origin of their region in order of
    priority, lowest first. If an lma is given, the section is stored in
    the lma region and copied to the vma region at startup.
    """
    def __init__(self, name, vma, lma=None, size=None,
            priority=0, prefix=False, preamble=None):
        self.name = checkname('section', name)
        self.vma = vma
        self.lma = lma
        self.size = size or LinkerSize()
        self.priority = priority
        # region-scoped sections are placed after the common sections
        self.prefix = prefix
        self.preamble = preamble

    @classmethod
    def stack(cls, vma):
        return cls('stack', vma,
            size=StackSize(),
            priority=PRIORITY_MAX-1)

    @classmethod
    def heap(cls, vma):
        return cls('heap', vma,
            size=HeapSize(),
            priority=PRIORITY_MAX)

    @classmethod
    def boot_config(cls, size, name, vma):
        return cls(name, vma,
            size=FixedSize(size),
            priority=-1)

    @classmethod
    def vector_table(cls, vma, lma=None):
        return cls('vector_table', vma, lma,
            priority=0,
            preamble='LONG(__start_stack);')

    @classmethod
    def text(cls, vma, lma=None):
        return cls('text', vma, lma, priority=1)

    @classmethod
    def data(cls, prefix, vma, lma=None):
        return cls('data', vma, lma,
            priority=102 if prefix else 2,
            prefix=prefix)

    @classmethod
    def rodata(cls, prefix, vma, lma=None):
        return cls('rodata', vma, lma,
            priority=103 if prefix else 3,
            prefix=prefix)

    @classmethod
    def bss(cls, prefix, vma, lma=None):
        return cls('bss', vma, lma,
            priority=104 if prefix else 4,
            prefix=prefix)

    def __str__(self):
        return "%(vma)s%(lma)s %(size)s" % dict(
            vma=self.vma,
            lma=' AT> %s' % self.lma if self.lma else '',
            size=self.size)

class LinkerScript:
    """
    Buildable description of memory regions, the common sections placed
    in them, and which sections are loaded from where. Regions and
    sections can only be added, and are rendered in declaration order.
    """
    __argname__ = "layout"
    __arghelp__ = __doc__
    @classmethod
    def __argparse__(cls, parser, **kwargs):
        parser.add_argument('--word', type=Word,
            help="Width of the target's machine word, either 32 or 64. "
                "Defaults to 32.")
        parser.add_argument('--output',
            help="Path of the generated linker script, relative to the "
                "layout path. Defaults to link.x.")

        regionparser = parser.add_set('--region')
        regionparser.add_argument('--origin', type=int,
            help="Starting address of the region.")
        regionparser.add_argument('--size', type=int,
            help="Size of the region in bytes.")

        bootparser = parser.add_set('--boot_config')
        bootparser.add_argument('--size', type=int,
            help="Fixed size of the boot configuration block in bytes.")
        bootparser.add_argument('--vma',
            help="Region the boot configuration block is placed in.")

        for name in ['stack', 'heap']:
            nested = parser.add_nestedparser('--'+name)
            nested.add_argument('vma',
                help="Region the %s is placed in." % name)
            nested.add_argument('--vma',
                help="Region the %s is placed in." % name)

        for name in ['vector_table', 'text', 'data', 'rodata', 'bss']:
            nested = parser.add_nestedparser('--'+name)
            nested.add_argument('vma',
                help="Region the %s section runs from." % name)
            nested.add_argument('--vma',
                help="Region the %s section runs from." % name)
            nested.add_argument('--lma',
                help="Region the %s section is loaded from. Optional, "
                    "the section is loaded in place by default." % name)
            if name in {'data', 'rodata', 'bss'}:
                nested.add_argument('--prefix', type=bool,
                    help="Place the %s section in the region-scoped "
                        "tier, after the common sections." % name)

    def __init__(self, word=32, output='link.x'):
        self.word = Word(word)
        self.output = output
        self._regions = co.OrderedDict()
        self._sections = co.OrderedDict()

    @property
    def regions(self):
        return list(self._regions.values())

    @property
    def sections(self):
        return list(self._sections.values())

    def region(self, name, origin, size):
        """
        Add a named memory region.
        """
        if name in self._regions:
            raise DuplicateRegion(name)
        region = Region(name, origin, size, word=self.word)
        region.id = RegionID(name, self, len(self._regions))
        self._regions[name] = region
        return region.id

    def regionid(self, name, role=None):
        """
        Look up the handle of a declared region by name.
        """
        region = self._regions.get(name)
        if region is None:
            raise {'vma': UnknownVMA, 'lma': UnknownLMA}.get(
                role, UnknownRegion)(name, role)
        return region.id

    def _checkregion(self, regionid, role):
        if regionid is None and role == 'lma':
            return None
        if (not isinstance(regionid, RegionID) or
                regionid._owner is not self or
                regionid.name not in self._regions):
            raise {'vma': UnknownVMA, 'lma': UnknownLMA}[role](
                getattr(regionid, 'name', regionid))
        return regionid

    def _addsection(self, section):
        self._checkregion(section.vma, 'vma')
        self._checkregion(section.lma, 'lma')
        if section.name in self._sections:
            raise DuplicateSection(section.name)
        self._sections[section.name] = section
        section.id = SectionID(section.name, self, len(self._sections)-1)
        return section.id

    def stack(self, vma):
        """
        Required stack location. The stack takes what is left of the
        region, starting at the top address and going down.
        """
        return self._addsection(Section.stack(vma))

    def heap(self, vma):
        """
        Optional heap location. The heap takes what is left of the region
        with addresses going up.
        """
        return self._addsection(Section.heap(vma))

    def boot_config(self, size, name, vma):
        """
        Optional boot configuration block placed before the vector table.
        This is common in devices booting from external memories which
        need a block describing the boot device.
        """
        return self._addsection(
            Section.boot_config(self.word(size), name, vma))

    def vector_table(self, vma, lma=None):
        """
        Required vector table, normally placed at the beginning of text.
        """
        return self._addsection(Section.vector_table(vma, lma))

    def text(self, vma, lma=None):
        return self._addsection(Section.text(vma, lma))

    def data(self, prefix, vma, lma=None):
        return self._addsection(Section.data(prefix, vma, lma))

    def rodata(self, prefix, vma, lma=None):
        return self._addsection(Section.rodata(prefix, vma, lma))

    def bss(self, prefix, vma, lma=None):
        return self._addsection(Section.bss(prefix, vma, lma))

    def sorted_sections(self):
        """
        Sections in placement order, by priority and then by declaration.
        """
        return sorted(self._sections.values(),
            key=lambda section: section.priority)

    def copies(self):
        """
        Symbols the startup code needs to copy each loaded section to where
        it runs, as (load, start, end) triples in placement order.
        """
        return [
            ('__load_%s' % section.name,
                '__start_%s' % section.name,
                '__end_%s' % section.name)
            for section in self.sorted_sections()
            if section.lma]

    def validate(self):
        for name in REQUIRED:
            if name not in self._sections:
                raise MissingSection(name)

    def render(self, include='device.x'):
        """
        Validate and render the linker script as a string. This does not
        modify the LinkerScript.
        """
        self.validate()

        from .outputs import LdOutput
        output = LdOutput(include=include)
        output.build(self)
        return output.getvalue()

    def render_to(self, sink, include='device.x'):
        """
        Validate and write the linker script into the file-like sink.
        """
        text = self.render(include=include)
        try:
            sink.write(text)
            if hasattr(sink, 'flush'):
                sink.flush()
        except OSError as e:
            raise SinkFailure(e, getattr(sink, 'name', None)) from e

    def write(self, sink, include='device.x'):
        """ alias for render_to """
        return self.render_to(sink, include=include)

    def generate(self, path=None, include='device.x'):
        """
        Generate the linker script, by default as link.x in the current
        directory. The file is only replaced once it is completely written.
        """
        path = path or self.output
        text = self.render(include=include)

        try:
            fd, temp = tempfile.mkstemp(
                dir=os.path.dirname(os.path.abspath(path)),
                prefix='.%s.' % os.path.basename(path),
                suffix='.tmp')
        except OSError as e:
            raise SinkFailure(e, path) from e

        try:
            with os.fdopen(fd, 'w') as f:
                f.write(text)
            # mkstemp creates 0600, match what open would create
            umask = os.umask(0)
            os.umask(umask)
            os.chmod(temp, 0o666 & ~umask)
            os.replace(temp, path)
        except OSError as e:
            raise SinkFailure(e, path) from e
        finally:
            if os.path.exists(temp):
                os.remove(temp)

        return path

    @staticmethod
    def scan(path=None, recipe=None, **args):
        """
        Build a LinkerScript from a recipe.toml-style layout file and
        command-line arguments. Command-line arguments override anything
        in the layout file.
        """
        parser = ArgumentParser(add_help=False)
        LinkerScript.__argparse__(parser)

        # reparse
        args = parser.parse_dict(args)

        # load additional config from the filesystem
        path = path or '.'
        if not os.path.isdir(path):
            raise FileNotFoundError("Path %r not found" % path)
        try:
            nargs = parser.parse_toml(
                os.path.join(path, recipe or 'layout.toml'))
            args = argstuff.nsmerge(nargs, args)
        except FileNotFoundError:
            if recipe:
                # raise if explicitly requested
                raise

        ls = LinkerScript.fromargs(args)
        ls.output = os.path.join(path, ls.output)
        return ls

    @staticmethod
    def fromargs(args):
        """
        Build a LinkerScript from parsed arguments, regions first, then
        sections in a fixed order.
        """
        ls = LinkerScript(
            word=args.word or 32,
            output=args.output or 'link.x')

        for name, regionargs in args.region.items():
            if regionargs.origin is None or regionargs.size is None:
                raise ValueError(
                    "Region %r needs both an origin and a size" % name)
            ls.region(name, regionargs.origin, regionargs.size)

        def vma(sectionargs):
            return ls.regionid(sectionargs.vma, 'vma')

        def lma(sectionargs):
            if getattr(sectionargs, 'lma', None) is None:
                return None
            return ls.regionid(sectionargs.lma, 'lma')

        for name in ['stack', 'heap']:
            sectionargs = getattr(args, name)
            if sectionargs.vma is not None:
                getattr(ls, name)(vma(sectionargs))

        for name, bootargs in args.boot_config.items():
            if bootargs.size is None or bootargs.vma is None:
                raise ValueError(
                    "Boot config %r needs both a size and a vma" % name)
            ls.boot_config(bootargs.size, name, vma(bootargs))

        for name in ['vector_table', 'text', 'data', 'rodata', 'bss']:
            sectionargs = getattr(args, name)
            if sectionargs.vma is None:
                if sectionargs.lma is not None:
                    raise ValueError(
                        "Section %r has an lma but no vma" % name)
                continue
            if name in {'data', 'rodata', 'bss'}:
                getattr(ls, name)(bool(sectionargs.prefix),
                    vma(sectionargs), lma(sectionargs))
            else:
                getattr(ls, name)(vma(sectionargs), lma(sectionargs))

        return ls
