# fieldbits: PredicateWarning=no

import ctypes
import warnings

from fieldbits.layout import PredicateWarning
from fieldbits.struct import BitStruct

from .utils import *


class PredicateWarningLinterTestCase(FieldbitsTestCase):
    def test_silenced(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            class S(BitStruct):
                _fields_ = [("status", ctypes.c_uint8)]
                _typed_bit_fields_ = [("status", {"busy": (2, "bool"), "ready": (1, "bool")})]

                def is_ready(self):
                    return "mine"
        self.assertEqual([w for w in caught if issubclass(w.category, PredicateWarning)], [])
        self.assertFalse(hasattr(S, "is_busy"))
        self.assertEqual(S().is_ready(), "mine")
