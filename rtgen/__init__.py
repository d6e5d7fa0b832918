#
# Generates linker scripts at build time from a description of the
# target's memory regions and sections.
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

from .word import Word
from .errors import (
    LinkerError, DuplicateRegion, DuplicateSection, MissingSection,
    UnknownRegion, UnknownVMA, UnknownLMA, SinkFailure)
from .layout import (
    FLASH, RAM, REQUIRED,
    RegionID, SectionID, Region, Section,
    SectionSize, LinkerSize, FixedSize, StackSize, HeapSize,
    LinkerScript)
