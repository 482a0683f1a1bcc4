# [Section Tags]
BKHD = b"BKHD"
DIDX = b"DIDX"
DATA = b"DATA"
HIRC = b"HIRC"
# [End]

# [Section Sizes]
SECTION_HEADER_BYTES = 8
BKHD_DESCRIPTOR_BYTES = 8
DIDX_ENTRY_BYTES = 12
OBJECT_COUNT_BYTES = 4
BANK_SOURCE_BYTES = 14
# [End]

# [Property IDs]
LOOP_PROP = 0x07
PROP_ENTRY_BYTES = 5
# [End]

# [Misc]
WEM_ALIGNMENT_BYTES = 16
INFINITE_LOOPS = 0
MAX_U32 = 0xFFFFFFFF
COPY_CHUNK_SIZE = 1 << 20
# [End]

# [Plugin IDs]
VORBIS = 0x00040001
# [End]


class HircType:
    State = 0x01
    Sound = 0x02
    Action = 0x03
    Event = 0x04
    RandomSequenceContainer = 0x05
    SwitchContainer = 0x06
    ActorMixer = 0x07
    AudioBus = 0x08
    LayerContainer = 0x09
    MusicSegment = 0x0A
    MusicTrack = 0x0B
    MusicSwitch = 0x0C
    MusicRandomSequence = 0x0D
    Attenuation = 0x0E
    DialogEvent = 0x0F
    FxShareSet = 0x10
    FxCustom = 0x11
    AuxiliaryBus = 0x12
    LFO = 0x13
    Envelope = 0x14
    AudioDevice = 0x15
    TimeMod = 0x16
