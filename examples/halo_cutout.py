import numpy as np

from lccutout.config import CutoutConfig
from lccutout.pipeline import CutoutPipeline
from lccutout.process_group import get_process_group
from lccutout.utils import generate_synthetic_partition, write_lightcone_steps
from lccutout.writer import read_cutout_field, step_output_dir

# lightcone steps to fake and cut out
steps = [496, 497, 498]

# particles per step, positions uniform in [-boxsize, boxsize]^3
npart   = 200000
boxsize = 500.

# halo to center on and physical width of the cutout box
halo_pos   = [120., 80., 60.]
box_length = 25.

lcdir  = "./synthetic_lc"
outdir = "./halo_cutout"

group = get_process_group()

# rank 0 writes the fake lightcone, everyone reads it
if group.is_master:
    write_lightcone_steps(lcdir, {s: generate_synthetic_partition(npart, box_size=boxsize, step=s, seed=s)
                                  for s in steps}, extra_blocks=("#0",))
group.barrier()

config = CutoutConfig(input_dir=lcdir, output_dir=outdir, mode="halo",
                      halo_pos=halo_pos, box_length=box_length, steps=steps)
pipeline, todo = CutoutPipeline.from_config(config, group)
layouts = pipeline.run(todo)

if group.is_master:
    for step in sorted(layouts):
        stepdir = step_output_dir(outdir, pipeline.prefix, step)
        theta = read_cutout_field(stepdir, 'theta', step) / 3600.
        phi   = read_cutout_field(stepdir, 'phi', step) / 3600.
        if theta.size == 0:
            print(f"step {step}: empty cutout")
            continue
        print(f"step {step}: {layouts[step].total} particles, "
              f"theta in [{theta.min():.3f}, {theta.max():.3f}] deg, "
              f"phi in [{phi.min():.3f}, {phi.max():.3f}] deg")
