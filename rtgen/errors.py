#
# Layout errors
#
# Copyright (c) 2020, Arm Limited. All rights reserved.
# SPDX-License-Identifier: BSD-3-Clause
#

"""
Set of errors raised while describing or generating a memory layout.

None of these are recovered from internally, every error aborts the
current declaration or generation and is left to the caller.
"""

class LinkerError(Exception):
    """
    Base class of every layout error.
    """

class DuplicateRegion(LinkerError):
    def __init__(self, name):
        super().__init__("Duplicate region, %r already defined" % name)
        self.name = name

class DuplicateSection(LinkerError):
    def __init__(self, name):
        super().__init__("Duplicate section, %r already defined" % name)
        self.name = name

class MissingSection(LinkerError):
    def __init__(self, name):
        super().__init__("Missing required section %r" % name)
        self.name = name

class UnknownRegion(LinkerError):
    role = 'region'
    def __init__(self, region, role=None):
        self.region = str(region)
        self.role = role or self.role
        super().__init__("Region %r used as %s is unknown" % (
            self.region, self.role.upper()
                if self.role in {'vma', 'lma'} else
                self.role))

class UnknownVMA(UnknownRegion):
    role = 'vma'

class UnknownLMA(UnknownRegion):
    role = 'lma'

class SinkFailure(LinkerError):
    def __init__(self, error, path=None):
        self.error = error
        self.path = path
        super().__init__("%s%s" % (
            'while writing %r: ' % path if path else '',
            error))
