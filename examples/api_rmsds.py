import sys

from fastrmsds import FastRMSDs, setup_library_logging

# usage: python api_rmsds.py model.pdb sim.dcd [sim2.dcd]
top, traj = sys.argv[1], sys.argv[2]
setup_library_logging()

fr = FastRMSDs(traj, top, atoms="name CA", skip=10)
result = fr.rmsds(workers=4, output="rmsds_output")
print(result.data.shape, float(result.data.max()))

if len(sys.argv) > 3:
    other = FastRMSDs(sys.argv[3], top, atoms="name CA")
    cross = fr.rmsds(other=other, output="rmsds_cross", cache="streaming")
    print(cross.data.shape)
