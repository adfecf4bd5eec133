#      column - dtype      (bytes)
#     x, y, z - float32    (3 x 4)
#  vx, vy, vz - float32    (3 x 4)
#           a - float32    (4)
#          id - int64      (8)
#        step - int32      (4)
#    rotation - int32      (4)
# replication - int32      (4)
input_columns = {
    'x'           : 'f4',
    'y'           : 'f4',
    'z'           : 'f4',
    'vx'          : 'f4',
    'vy'          : 'f4',
    'vz'          : 'f4',
    'a'           : 'f4',
    'id'          : 'i8',
    'step'        : 'i4',
    'rotation'    : 'i4',
    'replication' : 'i4',
}

# Fields written per step, in write order; theta and phi are derived on selection
output_fields = {
    'id'          : 'i8',
    'x'           : 'f4',
    'y'           : 'f4',
    'z'           : 'f4',
    'vx'          : 'f4',
    'vy'          : 'f4',
    'vz'          : 'f4',
    'theta'       : 'f4',
    'phi'         : 'f4',
    'a'           : 'f4',
    'rotation'    : 'i4',
    'replication' : 'i4',
}

derived_fields = ['theta', 'phi']

# Record layout of the raw lightcone step files read by RawLightconeReader
#      all - 48 bytes
#     x,y,z - 0,4,8
#  vx,vy,vz - 12,16,20
#         a - 24
#        id - 28 (unaligned int64)
#      step - 36
#  rotation - 40
# replication - 44
LIGHTCONE_RECORD = [(name, dtype) for name, dtype in input_columns.items()]
