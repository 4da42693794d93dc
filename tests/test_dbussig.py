#+
# Tests for the libdbus signature wrappers.
#-

import pytest

try :
    import dbussig
except OSError as err :
    pytest.skip("libdbus not loadable: %s" % err, allow_module_level = True)
#end try
from dbussig import \
    DBUS, \
    DBusError, \
    SignatureIter

def test_validate_single() :
    assert dbussig.signature_validate_single("a{sv}")
    assert dbussig.signature_validate_single("(ia(sy))")
    with pytest.raises(DBusError) as info :
        dbussig.signature_validate_single("a{vs}")
    #end with
    assert info.value.name == "org.freedesktop.DBus.Error.InvalidSignature"
#end test_validate_single

def test_validate_with_error_object() :
    error = dbussig.Error.init()
    assert not error.is_set
    error.raise_if_set()
    assert not dbussig.signature_validate_single("ii", error)
    assert error.is_set
    assert error.name == "org.freedesktop.DBus.Error.InvalidSignature"
    assert len(error.message) != 0
    with pytest.raises(DBusError) :
        error.raise_if_set()
    #end with
    with pytest.raises(TypeError) :
        dbussig.signature_validate_single("i", "not an error")
    #end with
#end test_validate_with_error_object

def test_signature_iter() :
    sigiter = SignatureIter.init("a{sv}(ii)y")
    types = []
    for elt in sigiter :
        types.append((elt.current_type, elt.signature))
    #end for
    assert types == \
        [
            (DBUS.TYPE_ARRAY, "a{sv}"),
            (DBUS.TYPE_STRUCT, "(ii)"),
            (DBUS.TYPE_BYTE, "y"),
        ]
#end test_signature_iter

def test_signature_iter_recurse() :
    sigiter = SignatureIter.init("a{s(ib)}")
    assert sigiter.element_type == DBUS.TYPE_DICT_ENTRY
    entry = sigiter.recurse()
    assert entry.current_type == DBUS.TYPE_DICT_ENTRY
    assert list(elt.signature for elt in entry.recurse()) == ["s", "(ib)"]
#end test_signature_iter_recurse
